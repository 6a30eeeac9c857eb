"""
Passkey registration flow.

start:    validate input, reject known usernames, ask the verification service
          for credential creation options and remember the pending factor.
complete: verify the credential produced by the ceremony against the pending
          factor and, on success, store the new user.

Both steps take the current SessionState and return the next one inside a
StepResult; they never touch the session store themselves.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from passkey_auth.api.verify_client import VerificationService
from passkey_auth.models.session import PendingRegistration, SessionState, is_expired
from passkey_auth.models.user import User, derive_identity
from passkey_auth.services.user_store import UserDirectory
from passkey_auth.utils.exceptions import (
    ConflictError,
    PasskeyError,
    StateError,
    UpstreamError,
    ValidationError,
)
from passkey_auth.utils.logger import get_logger

from .results import FlowPhase, StepResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class RegistrationStart:
    options: Dict[str, Any]
    factor_reference: str


class RegistrationFlow:
    def __init__(
        self,
        users: UserDirectory,
        verifier: VerificationService,
        pending_ttl_seconds: int = 300,
        require_reference_echo: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.users = users
        self.verifier = verifier
        self.pending_ttl_seconds = pending_ttl_seconds
        self.require_reference_echo = require_reference_echo
        self._clock = clock

    def phase(self, session: SessionState) -> FlowPhase:
        return FlowPhase.PENDING if session.registration else FlowPhase.IDLE

    def _fail(self, session: SessionState, error: PasskeyError) -> StepResult:
        return StepResult(session=session, phase=self.phase(session), error=error)

    def start(
        self,
        session: SessionState,
        username: Optional[str],
        display_name: Optional[str],
    ) -> StepResult[RegistrationStart]:
        username = (username or "").strip()
        display_name = (display_name or "").strip()
        if not username or not display_name:
            return self._fail(session, ValidationError("Username and display name are required"))

        # Must run before any upstream call; put() relies on it for uniqueness
        if self.users.exists(username):
            logger.info("Registration rejected, username taken", username=username)
            return self._fail(session, ConflictError(f"User already exists: {username}"))

        identity = derive_identity(username)
        try:
            options, factor_reference = self.verifier.create_factor(identity, display_name)
        except UpstreamError as e:
            logger.error("Registration start failed", username=username, error=str(e))
            return self._fail(session, e)

        if session.registration is not None:
            logger.warning(
                "Replacing registration already in progress",
                username=username,
                previous_username=session.registration.username,
                previous_factor=session.registration.factor_reference,
            )

        pending = PendingRegistration(
            username=username,
            display_name=display_name,
            identity=identity,
            factor_reference=factor_reference,
            created_at=self._clock(),
        )
        logger.info(
            "Registration started",
            username=username,
            identity=identity,
            factor_sid=factor_reference,
        )
        return StepResult(
            session=session.with_registration(pending),
            phase=FlowPhase.PENDING,
            value=RegistrationStart(options=options, factor_reference=factor_reference),
        )

    def complete(
        self,
        session: SessionState,
        credential: Optional[Dict[str, Any]],
        factor_reference: Optional[str] = None,
    ) -> StepResult[str]:
        pending = session.registration
        if pending is None:
            return self._fail(session, StateError("No registration in progress"))

        # A reference from an earlier start; the pending entry belongs to a newer one
        if factor_reference and factor_reference != pending.factor_reference:
            logger.warning(
                "Registration reference mismatch",
                username=pending.username,
                expected=pending.factor_reference,
                received=factor_reference,
            )
            return self._fail(
                session, StateError("Registration does not match the one in progress")
            )
        if self.require_reference_echo and not factor_reference:
            return self._fail(session, ValidationError("factorReference is required"))
        if not credential or not isinstance(credential, dict):
            return self._fail(session, ValidationError("Credential is required"))

        cleared = session.with_registration(None)

        if is_expired(pending.created_at, self.pending_ttl_seconds, now=self._clock()):
            logger.info("Registration expired", username=pending.username)
            return self._fail(cleared, StateError("Registration expired, please start again"))

        try:
            factor = self.verifier.verify_factor(pending.factor_reference, credential)
        except UpstreamError as e:
            logger.error(
                "Registration verification failed",
                username=pending.username,
                factor_sid=pending.factor_reference,
                error=str(e),
            )
            return self._fail(cleared, e)

        returned_sid = factor.get("sid")
        if returned_sid and returned_sid != pending.factor_reference:
            logger.warning(
                "Verified factor does not match pending registration",
                username=pending.username,
                expected=pending.factor_reference,
                received=returned_sid,
            )
            return self._fail(
                cleared, StateError("Credential does not belong to the registration in progress")
            )

        user = User(
            username=pending.username,
            display_name=pending.display_name,
            identity=pending.identity,
            factor_reference=pending.factor_reference,
        )
        # Another session may have finished the same username meanwhile
        if not self.users.add(user):
            logger.warning("Registration lost username race", username=pending.username)
            return self._fail(cleared, ConflictError(f"User already exists: {pending.username}"))

        logger.info("Registration completed", username=pending.username, factor_sid=pending.factor_reference)
        return StepResult(session=cleared, phase=FlowPhase.COMPLETED, value=pending.username)
