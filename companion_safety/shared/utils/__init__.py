"""Shared utilities for companion safety services."""
from .pii import (
    configure_pii_salt,
    hash_pii,
    hash_text_for_audit,
    is_pii_salt_configured,
    load_pii_salt,
)

__all__ = [
    "configure_pii_salt",
    "hash_pii",
    "hash_text_for_audit",
    "is_pii_salt_configured",
    "load_pii_salt",
]
