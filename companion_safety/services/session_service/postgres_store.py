"""PostgreSQL-backed session store.

Sessions are stored as a JSONB document plus a version column. Writes
take a row lock, so concurrent add_message calls for the same session
serialize at the row across every instance, and writes to different
sessions never block each other.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from psycopg2 import errors as pg_errors

from companion_safety.shared.database import ConnectionManager
from companion_safety.shared.models import AISession
from .store import DuplicateSessionError, Mutator, SessionConflictError, SessionStore

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    subject_id  TEXT NOT NULL,
    version     INTEGER NOT NULL DEFAULT 0,
    document    JSONB NOT NULL,
    ended_at    TIMESTAMPTZ,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS {table}_user_subject_idx ON {table} (user_id, subject_id);
"""


class PostgresSessionStore(SessionStore):
    """Session store shared by every service instance."""

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str = "ai_sessions",
        lock_timeout_ms: int = 5000,
    ):
        """Initialize store.

        Args:
            connection_manager: Database connection manager
            table_name: Name of the sessions table
            lock_timeout_ms: Longest wait for a session row lock
        """
        self.connection_manager = connection_manager
        self.table_name = table_name
        self.lock_timeout_ms = lock_timeout_ms

        logger.info(
            "SESSION_STORE_INITIALIZED",
            extra={"backend": "postgres", "table_name": table_name}
        )

    def ensure_schema(self) -> None:
        """Create the sessions table if it does not exist."""
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL.format(table=self.table_name))
            conn.commit()

    def _row_to_session(self, document: Any, version: int) -> AISession:
        data = json.loads(document) if isinstance(document, str) else document
        session = AISession.from_dict(data)
        session.version = version
        return session

    def create(self, session: AISession) -> None:
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        f"""
                        INSERT INTO {self.table_name}
                            (id, user_id, subject_id, version, document, ended_at, created_at)
                        VALUES (%s, %s, %s, %s, %s::jsonb, %s, %s)
                        """,
                        (
                            session.session_id,
                            session.user_id,
                            session.subject_id,
                            session.version,
                            json.dumps(session.to_dict()),
                            session.ended_at,
                            datetime.now(timezone.utc),
                        )
                    )
                except pg_errors.UniqueViolation as e:
                    conn.rollback()
                    raise DuplicateSessionError(
                        f"Session already exists: {session.session_id}"
                    ) from e
            conn.commit()

    def get(self, session_id: str) -> Optional[AISession]:
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT document, version FROM {self.table_name} WHERE id = %s",
                    (session_id,)
                )
                row = cur.fetchone()

                if row is None:
                    return None

                return self._row_to_session(row[0], row[1])

    def update(
        self,
        session_id: str,
        mutator: Mutator,
    ) -> Tuple[Optional[AISession], Any]:
        """Apply mutator under a row lock (SELECT ... FOR UPDATE).

        Concurrent writers on any instance wait for the lock rather than
        fail; only a wait longer than lock_timeout_ms raises.
        """
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute("SET LOCAL lock_timeout = %s", (f"{self.lock_timeout_ms}ms",))
                    cur.execute(
                        f"SELECT document, version FROM {self.table_name} "
                        "WHERE id = %s FOR UPDATE",
                        (session_id,)
                    )
                    row = cur.fetchone()
                except pg_errors.LockNotAvailable as e:
                    logger.error(
                        "SESSION_LOCK_TIMEOUT",
                        extra={"session_id": session_id, "lock_timeout_ms": self.lock_timeout_ms}
                    )
                    raise SessionConflictError(
                        f"Session {session_id} stayed locked for {self.lock_timeout_ms}ms"
                    ) from e

                if row is None:
                    conn.rollback()
                    return None, None

                session = self._row_to_session(row[0], row[1])
                result = mutator(session)
                if result is None:
                    conn.rollback()
                    return session, None

                session.version += 1
                cur.execute(
                    f"""
                    UPDATE {self.table_name}
                    SET document = %s::jsonb, version = %s, ended_at = %s
                    WHERE id = %s
                    """,
                    (
                        json.dumps(session.to_dict()),
                        session.version,
                        session.ended_at,
                        session_id,
                    )
                )
            conn.commit()

        return session, result

    def list_sessions(
        self,
        user_id: str,
        subject_id: Optional[str] = None,
    ) -> List[AISession]:
        query = f"SELECT document, version FROM {self.table_name} WHERE user_id = %s"
        params: list = [user_id]

        if subject_id:
            query += " AND subject_id = %s"
            params.append(subject_id)

        query += " ORDER BY created_at"

        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()

                return [self._row_to_session(row[0], row[1]) for row in rows]
