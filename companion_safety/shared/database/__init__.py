"""Database connection management for companion safety services.

Provides PostgreSQL connection pooling and health checks for the
production session store.
"""

from .connection import (
    DatabaseConfig,
    ConnectionManager,
    get_connection_manager,
)

__all__ = [
    "DatabaseConfig",
    "ConnectionManager",
    "get_connection_manager",
]
