"""PostgreSQL connection pool for the shared session store.

Every session-service instance behind the load balancer reads and
writes the same ai_sessions table, so the pool is sized per instance
and created lazily on first use. Credentials come from Secrets Manager
when SESSION_DB_SECRET_ARN is set, otherwise from SESSION_DB_* variables.
"""
import json
import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from psycopg2 import pool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the session database."""
    host: str = "localhost"
    port: int = 5432
    database: str = "companion_safety"
    username: str = ""
    password: str = ""
    min_connections: int = 1
    max_connections: int = 8
    connect_timeout: int = 5
    ssl_mode: str = "require"

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Read SESSION_DB_HOST, _PORT, _NAME, _USER, _PASSWORD, _POOL_MIN,
        _POOL_MAX and _SSL_MODE."""
        return cls(
            host=os.getenv("SESSION_DB_HOST", "localhost"),
            port=int(os.getenv("SESSION_DB_PORT", "5432")),
            database=os.getenv("SESSION_DB_NAME", "companion_safety"),
            username=os.getenv("SESSION_DB_USER", ""),
            password=os.getenv("SESSION_DB_PASSWORD", ""),
            min_connections=int(os.getenv("SESSION_DB_POOL_MIN", "1")),
            max_connections=int(os.getenv("SESSION_DB_POOL_MAX", "8")),
            ssl_mode=os.getenv("SESSION_DB_SSL_MODE", "require"),
        )

    @classmethod
    def from_secret(cls, secret_arn: str, region: Optional[str] = None) -> "DatabaseConfig":
        """Load credentials from a Secrets Manager secret.

        Host, port and database fall back to the environment when the
        secret only carries credentials. Pool sizing always comes from
        the environment.

        Raises:
            botocore.exceptions.ClientError: If the secret cannot be read
        """
        client = boto3.client(
            "secretsmanager",
            region_name=region or os.getenv("AWS_REGION", "us-east-1"),
        )
        secret = json.loads(client.get_secret_value(SecretId=secret_arn)["SecretString"])
        env = cls.from_env()

        logger.info("SESSION_DB_SECRET_LOADED", extra={"secret_arn": secret_arn})
        return cls(
            host=secret.get("host", env.host),
            port=int(secret.get("port", env.port)),
            database=secret.get("dbname", env.database),
            username=secret["username"],
            password=secret["password"],
            min_connections=env.min_connections,
            max_connections=env.max_connections,
            ssl_mode=env.ssl_mode,
        )

    @classmethod
    def load(cls) -> "DatabaseConfig":
        secret_arn = os.getenv("SESSION_DB_SECRET_ARN")
        if secret_arn:
            return cls.from_secret(secret_arn)
        return cls.from_env()

    def pool_kwargs(self) -> Dict[str, Any]:
        return {
            "minconn": self.min_connections,
            "maxconn": self.max_connections,
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.username,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
            "sslmode": self.ssl_mode,
        }


class ConnectionManager:
    """Lazily created psycopg2 ThreadedConnectionPool.

    Flask serves requests on worker threads; each request borrows its
    own connection and returns it when the block exits.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[pool.ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def _get_pool(self) -> pool.ThreadedConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                try:
                    self._pool = pool.ThreadedConnectionPool(**self.config.pool_kwargs())
                except Exception as e:
                    logger.error(
                        "SESSION_DB_POOL_OPEN_FAILED",
                        extra={"host": self.config.host, "error": str(e)}
                    )
                    raise
                logger.info(
                    "SESSION_DB_POOL_OPENED",
                    extra={
                        "host": self.config.host,
                        "database": self.config.database,
                        "max_connections": self.config.max_connections,
                    }
                )
            return self._pool

    @contextmanager
    def get_connection(self):
        """Borrow a connection; the open transaction is rolled back if the block raises.

        Usage:
            with manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(...)
                conn.commit()
        """
        connection_pool = self._get_pool()
        conn = connection_pool.getconn()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            connection_pool.putconn(conn)

    def health_check(self) -> Dict[str, Any]:
        """Round-trip a trivial query. Used by the session service /ready probe."""
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
                    cur.fetchone()
        except Exception as e:
            logger.error("SESSION_DB_HEALTH_CHECK_FAILED", extra={"error": str(e)})
            return {"healthy": False, "error": str(e)}

        return {"healthy": True, "database": self.config.database}

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("SESSION_DB_POOL_CLOSED")


_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> ConnectionManager:
    """Process-wide connection manager, configured on first call."""
    global _connection_manager

    if _connection_manager is None:
        _connection_manager = ConnectionManager(DatabaseConfig.load())

    return _connection_manager
