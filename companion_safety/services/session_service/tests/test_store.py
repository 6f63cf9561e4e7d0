"""Tests for the in-memory session store."""
import threading
from datetime import datetime, timezone

import pytest

from companion_safety.shared.models import AISession
from companion_safety.services.session_service.store import (
    DuplicateSessionError,
    InMemorySessionStore,
)


def _session(session_id="sess_001", user_id="user_123", subject_id="memorial_1"):
    return AISession(
        session_id=session_id,
        user_id=user_id,
        subject_id=subject_id,
        started_at=datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def store():
    return InMemorySessionStore()


class TestCreateAndGet:
    def test_get_unknown_returns_none(self, store):
        assert store.get("missing") is None

    def test_create_then_get(self, store):
        store.create(_session())

        assert store.get("sess_001").user_id == "user_123"

    def test_duplicate_rejected(self, store):
        store.create(_session())

        with pytest.raises(DuplicateSessionError):
            store.create(_session())

    def test_create_copies_input(self, store):
        session = _session()
        store.create(session)
        session.message_count = 42

        assert store.get("sess_001").message_count == 0


class TestUpdate:
    def test_commit_bumps_version(self, store):
        store.create(_session())

        def bump(session):
            session.message_count += 1
            return "done"

        snapshot, result = store.update("sess_001", bump)

        assert result == "done"
        assert snapshot.version == 1
        assert store.get("sess_001").version == 1
        assert store.get("sess_001").message_count == 1

    def test_none_result_writes_nothing(self, store):
        store.create(_session())

        def peek(session):
            session.message_count = 99
            return None

        snapshot, result = store.update("sess_001", peek)

        assert result is None
        assert store.get("sess_001").message_count == 0
        assert store.get("sess_001").version == 0

    def test_failing_mutator_leaves_state_untouched(self, store):
        store.create(_session())

        def explode(session):
            session.message_count = 5
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update("sess_001", explode)
        assert store.get("sess_001").message_count == 0

    def test_unknown_session(self, store):
        assert store.update("missing", lambda s: True) == (None, None)

    def test_returned_snapshot_is_detached(self, store):
        store.create(_session())

        snapshot, _ = store.update("sess_001", lambda s: True)
        snapshot.message_count = 42

        assert store.get("sess_001").message_count == 0

    def test_writers_serialize_on_one_session(self, store):
        store.create(_session())

        def increment(session):
            session.message_count += 1
            return True

        def writer():
            for _ in range(50):
                store.update("sess_001", increment)

        threads = [threading.Thread(target=writer) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        current = store.get("sess_001")
        assert current.message_count == 1000
        assert current.version == 1000


class TestListSessions:
    def test_filters_by_user_and_subject(self, store):
        store.create(_session("a", "user_123", "memorial_1"))
        store.create(_session("b", "user_123", "memorial_2"))
        store.create(_session("c", "user_456", "memorial_1"))

        assert {s.session_id for s in store.list_sessions("user_123")} == {"a", "b"}
        assert [s.session_id for s in store.list_sessions("user_123", "memorial_2")] == ["b"]
        assert store.list_sessions("nobody") == []
