"""Audit Service: append-only trail of AI companion safety events.

Components:
- events.py: AuditEventType and the AuditEvent shape
- audit_logger.py: AuditSink interface and hash-chained in-memory sink
- kinesis_sink.py: Kinesis publisher for production
"""

from .events import AuditEvent, AuditEventType
from .audit_logger import AuditSink, ChainedAuditEntry, InMemoryAuditSink
from .kinesis_sink import KinesisAuditSink

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditSink",
    "ChainedAuditEntry",
    "InMemoryAuditSink",
    "KinesisAuditSink",
]
