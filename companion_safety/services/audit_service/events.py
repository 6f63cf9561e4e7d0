"""Audit event shape for AI companion sessions.

Payloads carry counters and flags only. Raw message text never leaves
the session tracker.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import uuid

from companion_safety.shared.models import RequestMeta


class AuditEventType(Enum):
    """Safety-relevant events emitted by the session tracker."""
    AI_SESSION_STARTED = "AI_SESSION_STARTED"
    AI_SESSION_ENDED = "AI_SESSION_ENDED"
    AI_MESSAGE_SENT = "AI_MESSAGE_SENT"
    AI_CRISIS_DETECTED = "AI_CRISIS_DETECTED"
    AI_BREAK_SUGGESTED = "AI_BREAK_SUGGESTED"


@dataclass(frozen=True)
class AuditEvent:
    """Immutable audit event handed to an AuditSink."""
    event_type: AuditEventType
    user_id: str
    subject_id: str
    session_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    request_meta: Optional[RequestMeta] = None
    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:16]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape consumed by the audit store."""
        result: Dict[str, Any] = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "subject_id": self.subject_id,
            "session_id": self.session_id,
            "payload": dict(self.payload),
        }
        if self.request_meta is not None:
            result["request_meta"] = self.request_meta.to_dict()
        return result
