"""
Server-side session records.

The browser only holds an opaque session id; the SessionState itself lives
here. Consuming a pending entry or logging out therefore takes effect for
every copy of the cookie, not just the one the server last sent.
"""

import secrets
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from passkey_auth.models.session import SESSION_KEY, SessionState
from passkey_auth.utils.logger import get_logger

logger = get_logger(__name__)


class SessionStore(Protocol):
    def create(self) -> str: ...

    def exists(self, session_id: str) -> bool: ...

    def load(self, session_id: str) -> SessionState: ...

    def save(self, session_id: str, state: SessionState) -> None: ...

    def destroy(self, session_id: str) -> None: ...

    def lock(self, session_id: str) -> threading.Lock: ...


class InMemorySessionStore:
    """
    Session records keyed by a random id, expired after max_age_seconds idle.

    lock(session_id) serializes the load/step/save cycle of one session, so a
    pending entry is consumed at most once even under concurrent requests.
    """

    def __init__(self, max_age_seconds: int = 14 * 24 * 60 * 60, clock: Callable[[], float] = time.time):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._records: Dict[str, Dict[str, Any]] = {}
        self._touched: Dict[str, float] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _expired(self, session_id: str) -> bool:
        touched = self._touched.get(session_id)
        if touched is None:
            return True
        return self.max_age_seconds > 0 and self._clock() - touched > self.max_age_seconds

    def _drop(self, session_id: str) -> None:
        self._records.pop(session_id, None)
        self._touched.pop(session_id, None)
        self._locks.pop(session_id, None)

    def create(self) -> str:
        self.cleanup_expired()
        session_id = secrets.token_urlsafe(32)
        with self._lock:
            self._records[session_id] = {}
            self._touched[session_id] = self._clock()
            self._locks[session_id] = threading.Lock()
        return session_id

    def exists(self, session_id: Optional[str]) -> bool:
        if not session_id:
            return False
        with self._lock:
            if session_id in self._records and self._expired(session_id):
                self._drop(session_id)
            return session_id in self._records

    def load(self, session_id: str) -> SessionState:
        with self._lock:
            record: Mapping[str, Any] = self._records.get(session_id) or {}
            if session_id in self._records:
                self._touched[session_id] = self._clock()
        return SessionState.load(record)

    def save(self, session_id: str, state: SessionState) -> None:
        """Write state back; a session destroyed in the meantime stays destroyed."""
        with self._lock:
            if session_id not in self._records:
                return
            self._records[session_id] = {SESSION_KEY: state.dump()}
            self._touched[session_id] = self._clock()

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._drop(session_id)

    def lock(self, session_id: str) -> threading.Lock:
        with self._lock:
            # Destroyed sessions get a throwaway lock; save() ignores them anyway
            return self._locks.get(session_id) or threading.Lock()

    def cleanup_expired(self) -> int:
        """Drop idle sessions; returns how many were removed."""
        with self._lock:
            expired = [sid for sid in self._records if self._expired(sid)]
            for sid in expired:
                self._drop(sid)
        if expired:
            logger.info("Expired sessions removed", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
