"""Shared shape of the two-phase flows"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from passkey_auth.models.session import SessionState
from passkey_auth.utils.exceptions import PasskeyError

T = TypeVar("T")


class FlowPhase(str, Enum):
    """
    Idle -> Pending (after start) -> Completed | Idle.

    complete is the only way out of Pending and is terminal whatever its outcome.
    """

    IDLE = "idle"
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """
    Outcome of one flow step: the next session state plus a value or an error.

    The session state is meaningful in both cases; callers persist it before
    acting on the error.
    """

    session: SessionState
    phase: FlowPhase
    value: Optional[T] = None
    error: Optional[PasskeyError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the tagged error if the step failed."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
