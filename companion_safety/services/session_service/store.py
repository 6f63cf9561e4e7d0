"""Session store interface and in-memory implementation.

The tracker is storage-agnostic: every write is a mutator applied by
update() while the store holds that session exclusively. Writers to one
session queue behind each other instead of failing, so the committed
order is the order writes complete and every derived counter stays
consistent. Each committed write bumps the session version.

InMemorySessionStore is for single-instance deployments and tests.
Deployments behind a load balancer use PostgresSessionStore so every
instance sees the same state.
"""
import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from companion_safety.shared.models import AISession

logger = logging.getLogger(__name__)


class SessionStoreError(Exception):
    """Base exception for session store errors."""
    pass


class DuplicateSessionError(SessionStoreError):
    """A session with this id already exists."""
    pass


class SessionConflictError(SessionStoreError):
    """The session could not be locked for writing in time."""
    pass


Mutator = Callable[[AISession], Any]


class SessionStore(ABC):
    """Storage capability for AI sessions.

    get() returns a detached snapshot; mutating it has no effect. Writes
    go through update(), which serializes writers per session.
    """

    @abstractmethod
    def create(self, session: AISession) -> None:
        """Insert a new session.

        Raises:
            DuplicateSessionError: If the session id is taken
        """

    @abstractmethod
    def get(self, session_id: str) -> Optional[AISession]:
        """Return a snapshot of the session, or None if unknown."""

    @abstractmethod
    def update(
        self,
        session_id: str,
        mutator: Mutator,
    ) -> Tuple[Optional[AISession], Any]:
        """Apply mutator to the latest state while holding the session.

        The mutator receives a working copy and returns None for
        "nothing to write". Any other result commits the copy and bumps
        the version. If the mutator raises, nothing is written.

        Returns:
            (snapshot after the call, mutator result); (None, None) if unknown

        Raises:
            SessionConflictError: If the session could not be locked
        """

    @abstractmethod
    def list_sessions(
        self,
        user_id: str,
        subject_id: Optional[str] = None,
    ) -> List[AISession]:
        """Return snapshots of every session for a user."""


class InMemorySessionStore(SessionStore):
    """Process-local session store with per-session locking.

    Each session id has its own lock, so writes to different sessions
    never contend with each other.
    """

    def __init__(self):
        self._sessions: Dict[str, AISession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

        logger.info("SESSION_STORE_INITIALIZED", extra={"backend": "memory"})

    def _lock_for(self, session_id: str) -> Optional[threading.Lock]:
        with self._registry_lock:
            return self._locks.get(session_id)

    def create(self, session: AISession) -> None:
        with self._registry_lock:
            if session.session_id in self._sessions:
                raise DuplicateSessionError(f"Session already exists: {session.session_id}")
            self._locks[session.session_id] = threading.Lock()
            self._sessions[session.session_id] = copy.deepcopy(session)

    def get(self, session_id: str) -> Optional[AISession]:
        lock = self._lock_for(session_id)
        if lock is None:
            return None
        with lock:
            return copy.deepcopy(self._sessions[session_id])

    def update(
        self,
        session_id: str,
        mutator: Mutator,
    ) -> Tuple[Optional[AISession], Any]:
        lock = self._lock_for(session_id)
        if lock is None:
            return None, None
        with lock:
            working = copy.deepcopy(self._sessions[session_id])
            result = mutator(working)
            if result is not None:
                working.version += 1
                self._sessions[session_id] = copy.deepcopy(working)
            return working, result

    def list_sessions(
        self,
        user_id: str,
        subject_id: Optional[str] = None,
    ) -> List[AISession]:
        with self._registry_lock:
            session_ids = list(self._sessions.keys())

        results = []
        for session_id in session_ids:
            snapshot = self.get(session_id)
            if snapshot is None or snapshot.user_id != user_id:
                continue
            if subject_id and snapshot.subject_id != subject_id:
                continue
            results.append(snapshot)
        return results
