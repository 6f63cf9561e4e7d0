"""Shared domain models for companion safety monitoring."""
from .crisis import (
    CrisisTier,
    CrisisAction,
    CrisisResult,
)
from .session import (
    MessageRole,
    RequestMeta,
    SessionMessage,
    AISession,
    SessionStats,
)

__all__ = [
    "CrisisTier",
    "CrisisAction",
    "CrisisResult",
    "MessageRole",
    "RequestMeta",
    "SessionMessage",
    "AISession",
    "SessionStats",
]
