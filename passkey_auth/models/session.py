"""
Per-client session state.

The state is a plain value: it is loaded from the session store at the start of
a request, handed to a flow step, and the step returns the next state. Each
update returns a new object; nothing mutates a state in place.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .user import User

SESSION_KEY = "passkey_state"


class PendingRegistration(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    display_name: str
    identity: str
    factor_reference: str
    created_at: float = Field(default_factory=time.time)


class PendingChallenge(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    identity: str
    challenge_reference: str
    created_at: float = Field(default_factory=time.time)


class SessionUser(BaseModel):
    """Copy of the authenticated user's public fields"""

    model_config = ConfigDict(frozen=True)

    username: str
    display_name: str

    @classmethod
    def from_user(cls, user: User) -> "SessionUser":
        return cls(username=user.username, display_name=user.display_name)


class SessionState(BaseModel):
    """At most one pending registration, one pending challenge, and the logged-in user."""

    model_config = ConfigDict(frozen=True)

    registration: Optional[PendingRegistration] = None
    challenge: Optional[PendingChallenge] = None
    user: Optional[SessionUser] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None

    def with_registration(self, pending: Optional[PendingRegistration]) -> "SessionState":
        return self.model_copy(update={"registration": pending})

    def with_challenge(self, pending: Optional[PendingChallenge]) -> "SessionState":
        return self.model_copy(update={"challenge": pending})

    def with_user(self, user: Optional[SessionUser]) -> "SessionState":
        return self.model_copy(update={"user": user})

    @classmethod
    def load(cls, store: Mapping[str, Any]) -> "SessionState":
        """Read state from a session mapping; unreadable data yields an empty state."""
        raw = store.get(SESSION_KEY)
        if not raw:
            return cls()
        try:
            return cls.model_validate(raw)
        except ValueError:
            return cls()

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def is_expired(created_at: float, ttl_seconds: int, now: Optional[float] = None) -> bool:
    if ttl_seconds <= 0:
        return False
    current = time.time() if now is None else now
    return current - created_at > ttl_seconds
