"""Tests for KinesisAuditSink."""
import json
import pytest
from unittest.mock import MagicMock, patch

from companion_safety.shared.utils import configure_pii_salt, hash_pii
from companion_safety.services.audit_service import (
    AuditEvent,
    AuditEventType,
    KinesisAuditSink,
)


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


def _event():
    return AuditEvent(
        event_type=AuditEventType.AI_CRISIS_DETECTED,
        user_id="user_123",
        subject_id="memorial_1",
        session_id="sess_001",
        payload={"tier": 1, "rule_ids": ["t1.want_to_die"], "message_number": 4},
    )


class TestKinesisAuditSink:
    def test_initialization(self):
        sink = KinesisAuditSink(stream_name="test-stream", enabled=True, region="us-west-2")

        assert sink.stream_name == "test-stream"
        assert sink.enabled is True
        assert sink.region == "us-west-2"

    def test_publish_disabled_returns_false(self):
        sink = KinesisAuditSink(enabled=False)

        assert sink.publish(_event()) is False

    def test_publish_success(self):
        sink = KinesisAuditSink(stream_name="test-stream")
        mock_client = MagicMock()
        mock_client.put_record.return_value = {"ShardId": "shard-0", "SequenceNumber": "1"}
        sink._kinesis_client = mock_client

        assert sink.publish(_event()) is True

        kwargs = mock_client.put_record.call_args.kwargs
        assert kwargs["StreamName"] == "test-stream"
        assert kwargs["PartitionKey"] == hash_pii("sess_001")
        data = json.loads(kwargs["Data"])
        assert data["event_type"] == "AI_CRISIS_DETECTED"
        assert data["payload"]["tier"] == 1

    def test_publish_failure_returns_false(self):
        sink = KinesisAuditSink()
        mock_client = MagicMock()
        mock_client.put_record.side_effect = Exception("Kinesis unavailable")
        sink._kinesis_client = mock_client

        assert sink.publish(_event()) is False

    def test_emit_never_raises(self):
        sink = KinesisAuditSink()
        mock_client = MagicMock()
        mock_client.put_record.side_effect = Exception("throttled")
        sink._kinesis_client = mock_client

        sink.emit(_event())  # Should not raise

    def test_client_unavailable_falls_back_to_log(self):
        sink = KinesisAuditSink()

        with patch("boto3.client", side_effect=Exception("no credentials")):
            assert sink.publish(_event()) is False

    def test_lazy_client_creation(self):
        sink = KinesisAuditSink(region="eu-west-1")

        with patch("boto3.client") as mock_boto:
            client = sink.kinesis_client

        mock_boto.assert_called_once_with("kinesis", region_name="eu-west-1")
        assert client is mock_boto.return_value
