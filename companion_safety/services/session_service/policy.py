"""Escalation policy - pure predicates over a session snapshot.

Callers re-evaluate these after every add_message. They hold no state
and read no clock: elapsed time comes from the snapshot's
duration_seconds, so the same snapshot always gets the same answer.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from companion_safety.shared.models import AISession, MessageRole, SessionMessage
from .config import DEFAULT_THRESHOLDS, SessionThresholds


def _elapsed_minutes(session: AISession) -> float:
    return max(session.duration_seconds, 0) / 60


def should_show_break_reminder(
    session: AISession,
    thresholds: SessionThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Decide whether to nudge the user to take a break.

    First reminder: elapsed time or message count crosses the first
    thresholds. Second reminder: the first has been shown and the
    second thresholds are crossed. Never true once both are shown.
    """
    minutes = _elapsed_minutes(session)

    if not session.break_reminder_shown:
        return (
            minutes >= thresholds.break_reminder_minutes
            or session.message_count >= thresholds.break_reminder_messages
        )

    if not session.second_break_reminder_shown:
        return (
            minutes >= thresholds.second_break_reminder_minutes
            or session.message_count >= thresholds.second_break_reminder_messages
        )

    return False


def should_escalate_crisis(
    session: AISession,
    thresholds: SessionThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Decide whether repeated crisis events need stronger intervention.

    Counts messages classified tier 1 or 2. Tier 3 is monitoring-only
    and never escalates here.
    """
    if not session.crisis_detected:
        return False

    crisis_events = sum(
        1 for message in session.messages
        if message.crisis_result is not None and message.crisis_result.is_crisis_event
    )
    return crisis_events >= thresholds.max_crisis_events_before_escalation


def should_warn_session_length(
    session: AISession,
    thresholds: SessionThresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """Long-session warning, independent of the break reminders."""
    return _elapsed_minutes(session) >= thresholds.session_warning_minutes


class ConcernLevel(Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class ConversationAnalysis:
    """Summary of crisis signals across a conversation."""
    crisis_event_count: int
    concern_level: ConcernLevel
    should_suggest_break: bool
    should_show_resources: bool

    def to_dict(self) -> dict:
        return {
            "crisis_event_count": self.crisis_event_count,
            "concern_level": self.concern_level.value,
            "should_suggest_break": self.should_suggest_break,
            "should_show_resources": self.should_show_resources,
        }


def analyze_conversation(
    messages: Iterable[SessionMessage],
    thresholds: SessionThresholds = DEFAULT_THRESHOLDS,
) -> ConversationAnalysis:
    """Look for crisis patterns over a whole conversation.

    Args:
        messages: Conversation history in order
        thresholds: Reminder thresholds (message-based break suggestion)

    Returns:
        ConversationAnalysis over the user's messages
    """
    user_messages = [m for m in messages if m.role == MessageRole.USER]
    flagged = [m for m in user_messages if m.crisis_tier > 0]

    if len(flagged) > 2:
        concern = ConcernLevel.HIGH
    elif flagged:
        concern = ConcernLevel.MODERATE
    else:
        concern = ConcernLevel.LOW

    return ConversationAnalysis(
        crisis_event_count=len(flagged),
        concern_level=concern,
        should_suggest_break=len(user_messages) > thresholds.break_reminder_messages,
        should_show_resources=any(m.crisis_result.is_crisis_event for m in flagged),
    )
