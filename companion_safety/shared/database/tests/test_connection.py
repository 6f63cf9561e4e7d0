"""Tests for the session database connection pool."""
import json
from unittest.mock import MagicMock, patch

import pytest

from companion_safety.shared.database.connection import (
    ConnectionManager,
    DatabaseConfig,
)

POOL = "companion_safety.shared.database.connection.pool.ThreadedConnectionPool"


@pytest.fixture
def manager():
    manager = ConnectionManager(DatabaseConfig(host="db"))
    manager._pool = MagicMock()
    return manager


class TestDatabaseConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SESSION_DB_HOST", "sessions.internal")
        monkeypatch.setenv("SESSION_DB_PORT", "6543")
        monkeypatch.setenv("SESSION_DB_POOL_MAX", "20")

        config = DatabaseConfig.from_env()

        assert config.host == "sessions.internal"
        assert config.port == 6543
        assert config.max_connections == 20
        assert config.database == "companion_safety"

    def test_load_prefers_secret(self, monkeypatch):
        monkeypatch.setenv("SESSION_DB_SECRET_ARN", "arn:aws:secretsmanager:db")
        monkeypatch.setenv("SESSION_DB_POOL_MAX", "3")
        client = MagicMock()
        client.get_secret_value.return_value = {
            "SecretString": json.dumps({"host": "rds", "username": "svc", "password": "pw"})
        }

        with patch("boto3.client", return_value=client):
            config = DatabaseConfig.load()

        client.get_secret_value.assert_called_once_with(SecretId="arn:aws:secretsmanager:db")
        assert config.host == "rds"
        assert config.username == "svc"
        assert config.max_connections == 3

    def test_load_without_secret_uses_env(self, monkeypatch):
        monkeypatch.delenv("SESSION_DB_SECRET_ARN", raising=False)
        monkeypatch.setenv("SESSION_DB_USER", "local")

        assert DatabaseConfig.load().username == "local"

    def test_pool_kwargs(self):
        kwargs = DatabaseConfig(host="db", database="sessions").pool_kwargs()

        assert kwargs["dbname"] == "sessions"
        assert kwargs["sslmode"] == "require"


class TestConnectionManager:
    def test_pool_opened_lazily_once(self):
        manager = ConnectionManager(DatabaseConfig(host="db", max_connections=4))

        with patch(POOL) as pool_cls:
            assert manager.is_open is False
            with manager.get_connection():
                pass
            with manager.get_connection():
                pass

        pool_cls.assert_called_once()
        assert pool_cls.call_args.kwargs["maxconn"] == 4
        assert manager.is_open is True

    def test_pool_open_failure_raises(self):
        manager = ConnectionManager(DatabaseConfig(host="db"))

        with patch(POOL, side_effect=RuntimeError("connection refused")):
            with pytest.raises(RuntimeError):
                with manager.get_connection():
                    pass

        assert manager.is_open is False

    def test_connection_returned_to_pool(self, manager):
        conn = manager._pool.getconn.return_value

        with manager.get_connection() as got:
            assert got is conn

        manager._pool.putconn.assert_called_once_with(conn)
        conn.rollback.assert_not_called()

    def test_rolls_back_on_error(self, manager):
        conn = manager._pool.getconn.return_value

        with pytest.raises(ValueError):
            with manager.get_connection():
                raise ValueError("boom")

        conn.rollback.assert_called_once()
        manager._pool.putconn.assert_called_once_with(conn)

    def test_health_check_healthy(self, manager):
        assert manager.health_check() == {"healthy": True, "database": "companion_safety"}

    def test_health_check_failure(self, manager):
        manager._pool.getconn.side_effect = RuntimeError("pool exhausted")

        health = manager.health_check()

        assert health["healthy"] is False
        assert "pool exhausted" in health["error"]

    def test_close(self, manager):
        pool_mock = manager._pool

        manager.close()

        pool_mock.closeall.assert_called_once()
        assert manager.is_open is False
