"""Kinesis audit sink.

Session audit events go to a Kinesis stream consumed by the external
audit store. Records are keyed by hashed session id, so one session's
events land on one shard in emission order.

A record that cannot be put is logged at CRITICAL with its full JSON
body (counters and flags only, no message text) for replay, and the
caller carries on.
"""
import json
import logging
import os
from typing import Optional

import boto3

from companion_safety.shared.utils import hash_pii, is_pii_salt_configured
from .audit_logger import AuditSink
from .events import AuditEvent

logger = logging.getLogger(__name__)


class KinesisAuditSink(AuditSink):
    """Fire-and-forget publisher of AuditEvents."""

    def __init__(
        self,
        stream_name: str = "companion-audit-events",
        enabled: bool = True,
        region: Optional[str] = None,
    ):
        """Initialize sink.

        Args:
            stream_name: Kinesis stream name
            enabled: False turns every publish into a logged skip (local dev)
            region: AWS region (defaults to AWS_REGION, then us-east-1)
        """
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._kinesis_client = None

        logger.info(
            "AUDIT_SINK_INITIALIZED",
            extra={"sink": "kinesis", "stream_name": stream_name, "enabled": enabled}
        )

    @property
    def kinesis_client(self):
        """Created on first use; None while credentials are unavailable."""
        if self._kinesis_client is None and self.enabled:
            try:
                self._kinesis_client = boto3.client("kinesis", region_name=self.region)
            except Exception as e:
                logger.error(
                    "KINESIS_CLIENT_UNAVAILABLE",
                    extra={"region": self.region, "error": str(e)}
                )
        return self._kinesis_client

    def emit(self, event: AuditEvent) -> None:
        self.publish(event)

    def publish(self, event: AuditEvent) -> bool:
        """Put one event on the stream.

        Returns:
            True once Kinesis has accepted the record
        """
        if not self.enabled:
            logger.debug("AUDIT_PUBLISH_DISABLED", extra={"event_id": event.event_id})
            return False

        record = json.dumps(event.to_dict())
        client = self.kinesis_client
        if client is None:
            self._log_unpublished(event, record, "client_unavailable")
            return False

        try:
            response = client.put_record(
                StreamName=self.stream_name,
                Data=record,
                PartitionKey=self._partition_key(event),
            )
        except Exception as e:
            self._log_unpublished(event, record, f"{type(e).__name__}: {e}")
            return False

        logger.info(
            "AUDIT_EVENT_PUBLISHED",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "shard_id": response.get("ShardId"),
            }
        )
        return True

    def _log_unpublished(self, event: AuditEvent, record: str, reason: str) -> None:
        logger.critical(
            "AUDIT_EVENT_NOT_PUBLISHED",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "stream_name": self.stream_name,
                "reason": reason,
                "record": record,
                "action": "MANUAL_REPLAY_REQUIRED",
            }
        )

    def _partition_key(self, event: AuditEvent) -> str:
        if is_pii_salt_configured():
            return hash_pii(event.session_id)
        return event.session_id
