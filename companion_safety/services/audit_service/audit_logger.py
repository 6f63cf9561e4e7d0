"""Audit sinks - append-only record of safety events.

The session tracker only ever writes to a sink; it never reads back.
InMemoryAuditSink links each entry to the previous one by SHA-256 so a
local trail can be checked for edits in development and tests.
"""
import hashlib
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .events import AuditEvent, AuditEventType

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"


class AuditSink(ABC):
    """Destination for audit events.

    Implementations may raise; the session tracker catches and logs
    every failure so auditing never breaks the chat.
    """

    @abstractmethod
    def emit(self, event: AuditEvent) -> None:
        """Record one event."""


def _link_hash(event: AuditEvent, previous_hash: str) -> str:
    body = json.dumps(
        {"event": event.to_dict(), "previous_hash": previous_hash},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(body.encode()).hexdigest()


@dataclass(frozen=True)
class ChainedAuditEntry:
    """An event sealed into the chain after previous_hash."""
    event: AuditEvent
    previous_hash: str
    entry_hash: str

    @classmethod
    def seal(cls, event: AuditEvent, previous_hash: str) -> "ChainedAuditEntry":
        return cls(event, previous_hash, _link_hash(event, previous_hash))

    def is_intact(self) -> bool:
        return _link_hash(self.event, self.previous_hash) == self.entry_hash


class InMemoryAuditSink(AuditSink):
    """Hash-chained in-process audit trail.

    Local development and tests only; deployments publish to Kinesis.
    """

    def __init__(self):
        self._entries: List[ChainedAuditEntry] = []
        self._lock = threading.Lock()

        logger.info("AUDIT_SINK_INITIALIZED", extra={"sink": "memory"})

    def emit(self, event: AuditEvent) -> None:
        with self._lock:
            tip = self._entries[-1].entry_hash if self._entries else GENESIS_HASH
            entry = ChainedAuditEntry.seal(event, tip)
            self._entries.append(entry)

        logger.debug(
            "AUDIT_ENTRY_APPENDED",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "session_id": event.session_id,
                "entry_hash": entry.entry_hash[:16],
            }
        )

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return [entry.event for entry in self._entries]

    def verify_chain(self) -> bool:
        """Check every link and every entry hash.

        Returns:
            False at the first edited or re-linked entry, True otherwise
        """
        with self._lock:
            entries = list(self._entries)

        expected_previous = GENESIS_HASH
        for position, entry in enumerate(entries):
            if entry.previous_hash != expected_previous or not entry.is_intact():
                logger.critical(
                    "AUDIT_CHAIN_BROKEN",
                    extra={"position": position, "event_id": entry.event.event_id}
                )
                return False
            expected_previous = entry.entry_hash

        return True

    def query(
        self,
        event_type: Optional[AuditEventType] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Events matching every given filter, in emission order.

        start_date and end_date are inclusive.
        """
        def matches(event: AuditEvent) -> bool:
            return (
                (event_type is None or event.event_type == event_type)
                and (session_id is None or event.session_id == session_id)
                and (user_id is None or event.user_id == user_id)
                and (start_date is None or event.timestamp >= start_date)
                and (end_date is None or event.timestamp <= end_date)
            )

        return [event for event in self.events if matches(event)]
