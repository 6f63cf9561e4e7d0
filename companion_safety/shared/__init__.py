"""Code shared across companion safety services."""
