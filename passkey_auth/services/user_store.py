"""
User directory.

Flows depend on the UserDirectory protocol only, so a persistent backend can
replace the in-memory one without touching flow logic. The in-memory directory
is lost on restart.
"""

import threading
from typing import Dict, Protocol

from passkey_auth.models.user import User
from passkey_auth.utils.exceptions import NotFoundError


class UserDirectory(Protocol):
    def exists(self, username: str) -> bool: ...

    def get(self, username: str) -> User: ...

    def put(self, user: User) -> None: ...

    def add(self, user: User) -> bool: ...


class InMemoryUserDirectory:
    """Thread-safe registry of completed registrations, keyed by username"""

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()

    def exists(self, username: str) -> bool:
        with self._lock:
            return username in self._users

    def get(self, username: str) -> User:
        with self._lock:
            user = self._users.get(username)
        if user is None:
            raise NotFoundError(f"Unknown username: {username}")
        return user

    def put(self, user: User) -> None:
        """Store a user, replacing any record with the same username"""
        with self._lock:
            self._users[user.username] = user

    def add(self, user: User) -> bool:
        """Store a user only if the username is free; False if it was taken"""
        with self._lock:
            if user.username in self._users:
                return False
            self._users[user.username] = user
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
