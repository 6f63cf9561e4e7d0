"""AI companion session models.

An AISession is owned exclusively by the session tracker. Callers only
ever receive detached snapshots of it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .crisis import CrisisResult


class MessageRole(Enum):
    """Author of a message in a companion conversation."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class RequestMeta:
    """Request context forwarded to the audit sink."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"ip_address": self.ip_address, "user_agent": self.user_agent}


@dataclass(frozen=True)
class SessionMessage:
    """One message in a session. Never mutated once appended."""
    message_id: str
    role: MessageRole
    content: str
    timestamp: datetime
    crisis_result: Optional[CrisisResult] = None

    @property
    def crisis_tier(self) -> int:
        return int(self.crisis_result.tier) if self.crisis_result else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.message_id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "crisis_result": self.crisis_result.to_dict() if self.crisis_result else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionMessage":
        crisis = data.get("crisis_result")
        return cls(
            message_id=data["id"],
            role=MessageRole(data["role"]),
            content=data.get("content", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            crisis_result=CrisisResult.from_dict(crisis) if crisis else None,
        )


@dataclass
class AISession:
    """State of one companion conversation.

    Invariants maintained by the tracker:
        - duration_seconds is (ended_at or last mutation) - started_at, never negative
        - crisis_detected is sticky once any tier > 0 message is recorded
        - crisis_rule_ids only grows
        - second_break_reminder_shown implies break_reminder_shown
        - messages is append-only
    """
    session_id: str
    user_id: str
    subject_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: int = 0
    message_count: int = 0
    crisis_detected: bool = False
    crisis_rule_ids: List[str] = field(default_factory=list)
    crisis_handled: bool = False
    break_reminder_shown: bool = False
    second_break_reminder_shown: bool = False
    resources_shown: bool = False
    messages: List[SessionMessage] = field(default_factory=list)
    version: int = 0  # Bumped on every committed write

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and persistence."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "subject_id": self.subject_id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "message_count": self.message_count,
            "crisis_detected": self.crisis_detected,
            "crisis_rule_ids": list(self.crisis_rule_ids),
            "crisis_handled": self.crisis_handled,
            "break_reminder_shown": self.break_reminder_shown,
            "second_break_reminder_shown": self.second_break_reminder_shown,
            "resources_shown": self.resources_shown,
            "messages": [m.to_dict() for m in self.messages],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AISession":
        ended_at = data.get("ended_at")
        return cls(
            session_id=data["session_id"],
            user_id=data["user_id"],
            subject_id=data["subject_id"],
            started_at=datetime.fromisoformat(data["started_at"]),
            ended_at=datetime.fromisoformat(ended_at) if ended_at else None,
            duration_seconds=int(data.get("duration_seconds", 0)),
            message_count=int(data.get("message_count", 0)),
            crisis_detected=bool(data.get("crisis_detected", False)),
            crisis_rule_ids=list(data.get("crisis_rule_ids") or []),
            crisis_handled=bool(data.get("crisis_handled", False)),
            break_reminder_shown=bool(data.get("break_reminder_shown", False)),
            second_break_reminder_shown=bool(data.get("second_break_reminder_shown", False)),
            resources_shown=bool(data.get("resources_shown", False)),
            messages=[SessionMessage.from_dict(m) for m in data.get("messages") or []],
            version=int(data.get("version", 0)),
        )


@dataclass(frozen=True)
class SessionStats:
    """Aggregate engagement statistics for one user."""
    total_sessions: int = 0
    average_duration: float = 0.0       # Seconds, ended sessions only
    average_message_count: float = 0.0  # All sessions
    crisis_rate: float = 0.0            # Fraction of sessions with crisis_detected

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "average_duration": round(self.average_duration, 2),
            "average_message_count": round(self.average_message_count, 2),
            "crisis_rate": round(self.crisis_rate, 4),
        }
