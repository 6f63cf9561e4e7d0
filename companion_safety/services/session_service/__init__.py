"""Session Service: AI companion session tracking and escalation policy.

Components:
- config.py: Reminder/escalation thresholds and backend selection
- store.py: SessionStore interface and in-memory store
- postgres_store.py: Shared PostgreSQL store for multi-instance deployments
- tracker.py: SessionTracker, the single owner of session state
- policy.py: Pure break-reminder and crisis-escalation predicates
- handler.py: Flask HTTP endpoints wrapping the tracker

Usage:
    from companion_safety.services.safety_service import classify
    from companion_safety.services.session_service import (
        InMemorySessionStore, SessionTracker, should_escalate_crisis,
    )
    tracker = SessionTracker(InMemorySessionStore())
    session = tracker.start_session("user_1", "memorial_1")
    tracker.add_message(session.session_id, "user", text, classify(text))
    should_escalate_crisis(tracker.get_session(session.session_id))
"""

from .config import DEFAULT_THRESHOLDS, SessionServiceConfig, SessionThresholds
from .store import (
    DuplicateSessionError,
    InMemorySessionStore,
    SessionConflictError,
    SessionStore,
    SessionStoreError,
)
from .tracker import SessionTracker
from .policy import (
    ConcernLevel,
    ConversationAnalysis,
    analyze_conversation,
    should_escalate_crisis,
    should_show_break_reminder,
    should_warn_session_length,
)

__all__ = [
    "DEFAULT_THRESHOLDS",
    "SessionServiceConfig",
    "SessionThresholds",
    "DuplicateSessionError",
    "InMemorySessionStore",
    "SessionConflictError",
    "SessionStore",
    "SessionStoreError",
    "SessionTracker",
    "ConcernLevel",
    "ConversationAnalysis",
    "analyze_conversation",
    "should_escalate_crisis",
    "should_show_break_reminder",
    "should_warn_session_length",
]
