"""Session Service configuration and reminder thresholds.

Thresholds are process-wide and read-only. They are consulted by the
escalation policy, never stored per session.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class SessionThresholds:
    """Break reminder and crisis escalation thresholds.

    Balanced approach: a gentle first nudge, a second one later,
    and a long-session warning.
    """
    # Time-based (minutes)
    break_reminder_minutes: int = 20
    second_break_reminder_minutes: int = 45
    session_warning_minutes: int = 60

    # Message-based
    break_reminder_messages: int = 15
    second_break_reminder_messages: int = 30

    # Crisis-related: tier 1-2 messages before escalation
    max_crisis_events_before_escalation: int = 3

    def __post_init__(self):
        if self.second_break_reminder_minutes < self.break_reminder_minutes:
            raise ValueError("Second break reminder must not come before the first")
        if self.second_break_reminder_messages < self.break_reminder_messages:
            raise ValueError("Second break reminder must not come before the first")
        if self.max_crisis_events_before_escalation < 1:
            raise ValueError("Crisis escalation count must be at least 1")

    @classmethod
    def from_env(cls) -> "SessionThresholds":
        """Create thresholds from environment variables.

        Environment variables:
            BREAK_REMINDER_MINUTES (default 20)
            SECOND_BREAK_REMINDER_MINUTES (default 45)
            SESSION_WARNING_MINUTES (default 60)
            BREAK_REMINDER_MESSAGES (default 15)
            SECOND_BREAK_REMINDER_MESSAGES (default 30)
            CRISIS_ESCALATION_COUNT (default 3)
        """
        return cls(
            break_reminder_minutes=int(os.getenv("BREAK_REMINDER_MINUTES", "20")),
            second_break_reminder_minutes=int(os.getenv("SECOND_BREAK_REMINDER_MINUTES", "45")),
            session_warning_minutes=int(os.getenv("SESSION_WARNING_MINUTES", "60")),
            break_reminder_messages=int(os.getenv("BREAK_REMINDER_MESSAGES", "15")),
            second_break_reminder_messages=int(os.getenv("SECOND_BREAK_REMINDER_MESSAGES", "30")),
            max_crisis_events_before_escalation=int(os.getenv("CRISIS_ESCALATION_COUNT", "3")),
        )


DEFAULT_THRESHOLDS = SessionThresholds()


@dataclass(frozen=True)
class SessionServiceConfig:
    """Backends for the session service."""
    store_backend: str = "memory"       # "memory" | "postgres"
    audit_backend: str = "memory"       # "memory" | "kinesis"
    audit_stream_name: str = "companion-audit-events"
    audit_enabled: bool = True
    default_region: str = "US"

    @classmethod
    def from_env(cls) -> "SessionServiceConfig":
        """Create config from environment variables.

        Environment variables:
            SESSION_STORE: memory | postgres (default memory)
            AUDIT_SINK: memory | kinesis (default memory)
            AUDIT_STREAM_NAME: Kinesis stream for audit events
            AUDIT_PUBLISHING_ENABLED: true | false (default true)
            DEFAULT_RESOURCE_REGION: Region for crisis resources (default US)
        """
        return cls(
            store_backend=os.getenv("SESSION_STORE", "memory").lower(),
            audit_backend=os.getenv("AUDIT_SINK", "memory").lower(),
            audit_stream_name=os.getenv("AUDIT_STREAM_NAME", "companion-audit-events"),
            audit_enabled=os.getenv("AUDIT_PUBLISHING_ENABLED", "true").lower() == "true",
            default_region=os.getenv("DEFAULT_RESOURCE_REGION", "US"),
        )
