"""Session tracker - owner of AI companion session state.

Every inbound message is classified first, then recorded here. The
tracker accumulates engagement and crisis signals on the session and
writes safety events to the audit sink. The escalation policy reads
the resulting snapshot to decide on break reminders and escalation.

Failure semantics:
    - Unknown session ids never raise: reads return None, mutations
      are logged no-ops
    - Ended sessions are final: further mutations are logged no-ops
    - Audit sink failures are logged at CRITICAL and swallowed; the
      conversation must never depend on auditing
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple, Union

from companion_safety.services.audit_service import AuditEvent, AuditEventType, AuditSink
from companion_safety.shared.models import (
    AISession,
    CrisisResult,
    MessageRole,
    RequestMeta,
    SessionMessage,
    SessionStats,
)
from companion_safety.shared.utils import hash_pii, is_pii_salt_configured
from .store import SessionStore

logger = logging.getLogger(__name__)


Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _user_hash(user_id: str) -> Optional[str]:
    return hash_pii(user_id) if is_pii_salt_configured() else None


class SessionTracker:
    """Tracks AI companion sessions for safety monitoring.

    All writes go through SessionStore.update(), which holds the session
    while the mutation runs, so concurrent writers to one session queue
    rather than fail and the committed message order is authoritative.
    """

    def __init__(
        self,
        store: SessionStore,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize tracker.

        Args:
            store: Session store (in-memory or shared)
            audit_sink: Destination for safety events; None disables auditing
            clock: Source of "now" (timezone-aware); injectable for tests
        """
        self.store = store
        self.audit_sink = audit_sink
        self.clock = clock or _utcnow

        logger.info(
            "SESSION_TRACKER_INITIALIZED",
            extra={
                "store": type(store).__name__,
                "audit_sink": type(audit_sink).__name__ if audit_sink else None,
            }
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self,
        user_id: str,
        subject_id: str,
        request_meta: Optional[RequestMeta] = None,
    ) -> AISession:
        """Start a new companion session.

        Args:
            user_id: User having the conversation
            subject_id: Memorial/companion being talked to
            request_meta: Optional IP address and user agent for the audit trail

        Returns:
            Snapshot of the new session
        """
        session = AISession(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            subject_id=subject_id,
            started_at=self.clock(),
        )
        self.store.create(session)

        logger.info(
            "AI_SESSION_STARTED",
            extra={
                "session_id": session.session_id,
                "user_id_hash": _user_hash(user_id),
                "subject_id": subject_id,
            }
        )

        self._emit(AuditEventType.AI_SESSION_STARTED, session, {}, request_meta)
        return session

    def end_session(
        self,
        session_id: str,
        request_meta: Optional[RequestMeta] = None,
    ) -> Optional[AISession]:
        """End a session and freeze its duration.

        Returns:
            Final snapshot, or None if the session is unknown
        """
        def finalize(session: AISession) -> Optional[bool]:
            if session.is_ended:
                logger.info("END_SESSION_ALREADY_ENDED", extra={"session_id": session_id})
                return None
            session.ended_at = self.clock()
            self._refresh_duration(session, session.ended_at)
            return True

        session, changed = self._mutate(session_id, finalize, "end_session")
        if session is None:
            return None

        if changed:
            logger.info(
                "AI_SESSION_ENDED",
                extra={
                    "session_id": session_id,
                    "user_id_hash": _user_hash(session.user_id),
                    "message_count": session.message_count,
                    "duration_seconds": session.duration_seconds,
                    "crisis_detected": session.crisis_detected,
                }
            )
            self._emit(
                AuditEventType.AI_SESSION_ENDED,
                session,
                {
                    "message_count": session.message_count,
                    "duration_seconds": session.duration_seconds,
                    "crisis_detected": session.crisis_detected,
                    "crisis_handled": session.crisis_handled,
                    "resources_shown": session.resources_shown,
                },
                request_meta,
            )
        return session

    def get_session(self, session_id: str) -> Optional[AISession]:
        """Snapshot of a session reflecting every committed write."""
        return self.store.get(session_id)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(
        self,
        session_id: str,
        role: Union[MessageRole, str],
        content: str,
        crisis_result: Optional[CrisisResult] = None,
        request_meta: Optional[RequestMeta] = None,
    ) -> Optional[SessionMessage]:
        """Append a message to a session.

        Args:
            session_id: Target session
            role: "user" or "assistant"
            content: Message text (stored on the session, never audited)
            crisis_result: Classification of the message, if any
            request_meta: Optional request context for the audit trail

        Returns:
            The recorded message, or None if the session is unknown or ended

        Raises:
            ValueError: If role is not a known MessageRole
            SessionConflictError: If the store could not lock the session
        """
        role = MessageRole(role)
        text = "" if content is None else str(content)
        is_crisis = crisis_result is not None and crisis_result.tier > 0

        def append(session: AISession) -> Optional[SessionMessage]:
            if session.is_ended:
                logger.warning(
                    "ADD_MESSAGE_SESSION_ENDED",
                    extra={"session_id": session_id, "role": role.value}
                )
                return None

            now = self.clock()
            message = SessionMessage(
                message_id=str(uuid.uuid4()),
                role=role,
                content=text,
                timestamp=now,
                crisis_result=crisis_result,
            )
            session.messages.append(message)
            session.message_count += 1
            self._refresh_duration(session, now)

            if is_crisis:
                session.crisis_detected = True
                for rule_id in crisis_result.matched_rule_ids:
                    if rule_id not in session.crisis_rule_ids:
                        session.crisis_rule_ids.append(rule_id)
            return message

        session, message = self._mutate(session_id, append, "add_message")
        if session is None or message is None:
            return None

        message_number = session.message_count

        # Crisis event first, so it is observable independently of the message event
        if is_crisis:
            logger.warning(
                "AI_CRISIS_RECORDED",
                extra={
                    "session_id": session_id,
                    "tier": int(crisis_result.tier),
                    "matched_rule_ids": list(crisis_result.matched_rule_ids),
                    "message_number": message_number,
                }
            )
            self._emit(
                AuditEventType.AI_CRISIS_DETECTED,
                session,
                {
                    "tier": int(crisis_result.tier),
                    "rule_ids": list(crisis_result.matched_rule_ids),
                    "message_number": message_number,
                },
                request_meta,
            )

        self._emit(
            AuditEventType.AI_MESSAGE_SENT,
            session,
            {
                "role": role.value,
                "message_number": message_number,
                "has_crisis_indicator": is_crisis,
            },
            request_meta,
        )
        return message

    # ------------------------------------------------------------------
    # Reminder and resource flags
    # ------------------------------------------------------------------

    def mark_break_reminder_shown(self, session_id: str) -> None:
        """Record that a break reminder was shown.

        The first call sets break_reminder_shown, the second sets
        second_break_reminder_shown. Later calls change nothing.
        """
        def mark(session: AISession) -> Optional[str]:
            if session.is_ended:
                return None
            if not session.break_reminder_shown:
                session.break_reminder_shown = True
                stage = "first"
            elif not session.second_break_reminder_shown:
                session.second_break_reminder_shown = True
                stage = "second"
            else:
                return None
            self._refresh_duration(session, self.clock())
            return stage

        session, stage = self._mutate(session_id, mark, "mark_break_reminder_shown")
        if session is None or stage is None:
            return

        self._emit(
            AuditEventType.AI_BREAK_SUGGESTED,
            session,
            {
                "reminder": stage,
                "message_count": session.message_count,
                "duration_minutes": session.duration_seconds // 60,
            },
        )

    def mark_resources_shown(self, session_id: str) -> None:
        """Record that crisis resources were shown. Idempotent."""
        self._set_flag(session_id, "resources_shown")

    def mark_crisis_handled(self, session_id: str) -> None:
        """Record that the user acknowledged the crisis resources. Idempotent."""
        self._set_flag(session_id, "crisis_handled")

    def _set_flag(self, session_id: str, flag: str) -> None:
        def mark(session: AISession) -> Optional[bool]:
            if session.is_ended or getattr(session, flag):
                return None
            setattr(session, flag, True)
            self._refresh_duration(session, self.clock())
            return True

        session, changed = self._mutate(session_id, mark, f"mark_{flag}")
        if changed:
            logger.info(
                "SESSION_FLAG_SET",
                extra={"session_id": session_id, "flag": flag}
            )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def get_session_stats(
        self,
        user_id: str,
        subject_id: Optional[str] = None,
    ) -> SessionStats:
        """Aggregate statistics over a user's sessions.

        Average duration uses ended sessions only; message count and
        crisis rate use every session.
        """
        sessions = self.store.list_sessions(user_id, subject_id)
        if not sessions:
            return SessionStats()

        ended = [s for s in sessions if s.is_ended]
        total_duration = sum(s.duration_seconds for s in ended)
        total_messages = sum(s.message_count for s in sessions)
        crisis_sessions = sum(1 for s in sessions if s.crisis_detected)

        return SessionStats(
            total_sessions=len(sessions),
            average_duration=total_duration / len(ended) if ended else 0.0,
            average_message_count=total_messages / len(sessions),
            crisis_rate=crisis_sessions / len(sessions),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _refresh_duration(self, session: AISession, now: datetime) -> None:
        end = session.ended_at or now
        session.duration_seconds = max(0, int((end - session.started_at).total_seconds()))

    def _mutate(
        self,
        session_id: str,
        mutator: Callable[[AISession], Any],
        operation: str,
    ) -> Tuple[Optional[AISession], Any]:
        """Apply mutator to the session through the store.

        The mutator returns None to signal "nothing to write"; the
        snapshot is then returned without a commit.

        Returns:
            (snapshot, mutator result); (None, None) if the session is unknown

        Raises:
            SessionConflictError: If the store could not lock the session
        """
        session, result = self.store.update(session_id, mutator)
        if session is None:
            logger.warning(
                "SESSION_NOT_FOUND",
                extra={"session_id": session_id, "operation": operation}
            )
        return session, result

    def _emit(
        self,
        event_type: AuditEventType,
        session: AISession,
        payload: Dict[str, Any],
        request_meta: Optional[RequestMeta] = None,
    ) -> None:
        if self.audit_sink is None:
            return

        try:
            self.audit_sink.emit(AuditEvent(
                event_type=event_type,
                user_id=session.user_id,
                subject_id=session.subject_id,
                session_id=session.session_id,
                payload=payload,
                request_meta=request_meta,
                timestamp=self.clock(),
            ))
        except Exception as e:
            logger.critical(
                "AUDIT_EMIT_FAILED",
                extra={
                    "event_type": event_type.value,
                    "session_id": session.session_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "EVENT_DROPPED",
                }
            )
