"""Tests for PostgresSessionStore with a mocked connection pool."""
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from psycopg2 import errors as pg_errors

from companion_safety.shared.models import (
    AISession,
    CrisisAction,
    CrisisResult,
    CrisisTier,
    MessageRole,
    SessionMessage,
)
from companion_safety.services.session_service.postgres_store import PostgresSessionStore
from companion_safety.services.session_service.store import (
    DuplicateSessionError,
    SessionConflictError,
)

STARTED = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _session():
    return AISession(
        session_id="sess_001",
        user_id="user_123",
        subject_id="memorial_1",
        started_at=STARTED,
        message_count=1,
        crisis_detected=True,
        crisis_rule_ids=["t1.want_to_die"],
        messages=[SessionMessage(
            message_id="msg_1",
            role=MessageRole.USER,
            content="I want to die",
            timestamp=STARTED,
            crisis_result=CrisisResult(
                CrisisTier.IMMEDIATE, ("t1.want_to_die",), CrisisAction.SHOW_RESOURCES, "..."
            ),
        )],
    )


@pytest.fixture
def cursor():
    return MagicMock()


@pytest.fixture
def conn(cursor):
    connection = MagicMock()
    connection.cursor.return_value.__enter__.return_value = cursor
    return connection


@pytest.fixture
def store(conn):
    manager = MagicMock()
    manager.get_connection.return_value.__enter__.return_value = conn
    return PostgresSessionStore(manager)


class TestCreate:
    def test_inserts_document(self, store, cursor, conn):
        store.create(_session())

        query, params = cursor.execute.call_args.args
        assert "INSERT INTO ai_sessions" in query
        assert params[0] == "sess_001"
        assert params[1] == "user_123"
        assert json.loads(params[4])["crisis_rule_ids"] == ["t1.want_to_die"]
        conn.commit.assert_called_once()

    def test_unique_violation_maps_to_duplicate(self, store, cursor):
        cursor.execute.side_effect = pg_errors.UniqueViolation()

        with pytest.raises(DuplicateSessionError):
            store.create(_session())


class TestGet:
    def test_missing_returns_none(self, store, cursor):
        cursor.fetchone.return_value = None

        assert store.get("missing") is None

    def test_round_trips_document(self, store, cursor):
        cursor.fetchone.return_value = (_session().to_dict(), 7)

        session = store.get("sess_001")

        assert session.version == 7
        assert session.messages[0].crisis_result.tier == CrisisTier.IMMEDIATE
        assert session.started_at == STARTED

    def test_accepts_text_document(self, store, cursor):
        cursor.fetchone.return_value = (json.dumps(_session().to_dict()), 2)

        assert store.get("sess_001").crisis_detected is True


class TestUpdate:
    def test_locks_row_then_writes(self, store, cursor, conn):
        cursor.fetchone.return_value = (_session().to_dict(), 3)

        def mark(session):
            session.resources_shown = True
            return True

        session, result = store.update("sess_001", mark)

        assert result is True
        assert session.version == 4
        queries = [c.args[0] for c in cursor.execute.call_args_list]
        assert "lock_timeout" in queries[0]
        assert "FOR UPDATE" in queries[1]
        assert "UPDATE ai_sessions" in queries[2]
        params = cursor.execute.call_args_list[2].args[1]
        assert json.loads(params[0])["resources_shown"] is True
        assert params[1] == 4
        assert params[-1] == "sess_001"
        conn.commit.assert_called_once()

    def test_no_write_when_mutator_returns_none(self, store, cursor, conn):
        cursor.fetchone.return_value = (_session().to_dict(), 3)

        session, result = store.update("sess_001", lambda s: None)

        assert result is None
        assert session.version == 3
        assert cursor.execute.call_count == 2
        conn.commit.assert_not_called()

    def test_unknown_session(self, store, cursor):
        cursor.fetchone.return_value = None

        assert store.update("missing", lambda s: True) == (None, None)

    def test_lock_timeout_maps_to_conflict(self, store, cursor):
        cursor.execute.side_effect = [None, pg_errors.LockNotAvailable()]

        with pytest.raises(SessionConflictError):
            store.update("sess_001", lambda s: True)


class TestListSessions:
    def test_filters_by_subject(self, store, cursor):
        cursor.fetchall.return_value = [(_session().to_dict(), 1)]

        sessions = store.list_sessions("user_123", "memorial_1")

        query, params = cursor.execute.call_args.args
        assert "subject_id = %s" in query
        assert params == ["user_123", "memorial_1"]
        assert [s.session_id for s in sessions] == ["sess_001"]

    def test_user_only(self, store, cursor):
        cursor.fetchall.return_value = []

        assert store.list_sessions("user_123") == []
        _, params = cursor.execute.call_args.args
        assert params == ["user_123"]


class TestEnsureSchema:
    def test_creates_table(self, store, cursor, conn):
        store.ensure_schema()

        assert "CREATE TABLE IF NOT EXISTS ai_sessions" in cursor.execute.call_args.args[0]
        conn.commit.assert_called_once()
