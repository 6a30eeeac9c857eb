"""
Passkey login flow.

start:    look up the user and ask the verification service for a challenge.
complete: submit the assertion; only an "approved" challenge logs the session in.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from passkey_auth.api.verify_client import VerificationService
from passkey_auth.models.session import PendingChallenge, SessionState, SessionUser, is_expired
from passkey_auth.services.user_store import UserDirectory
from passkey_auth.utils.exceptions import (
    AuthenticationError,
    NotFoundError,
    PasskeyError,
    StateError,
    UpstreamError,
    ValidationError,
)
from passkey_auth.utils.logger import get_logger

from .results import FlowPhase, StepResult

logger = get_logger(__name__)

APPROVED = "approved"


@dataclass(frozen=True)
class AuthenticationStart:
    options: Dict[str, Any]
    challenge_reference: str


class AuthenticationFlow:
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
        return FlowPhase.PENDING if session.challenge else FlowPhase.IDLE

    def _fail(self, session: SessionState, error: PasskeyError) -> StepResult:
        return StepResult(session=session, phase=self.phase(session), error=error)

    def start(self, session: SessionState, username: Optional[str]) -> StepResult[AuthenticationStart]:
        username = (username or "").strip()
        if not username:
            return self._fail(session, ValidationError("Username is required"))

        try:
            user = self.users.get(username)
        except NotFoundError as e:
            logger.info("Login rejected, unknown username", username=username)
            return self._fail(session, e)

        try:
            options, challenge_reference = self.verifier.create_challenge(user.identity)
        except UpstreamError as e:
            logger.error("Login start failed", username=username, error=str(e))
            return self._fail(session, e)

        if session.challenge is not None:
            logger.warning(
                "Replacing login already in progress",
                username=username,
                previous_username=session.challenge.username,
                previous_challenge=session.challenge.challenge_reference,
            )

        pending = PendingChallenge(
            username=user.username,
            identity=user.identity,
            challenge_reference=challenge_reference,
            created_at=self._clock(),
        )
        logger.info("Login started", username=username, challenge_sid=challenge_reference)
        return StepResult(
            session=session.with_challenge(pending),
            phase=FlowPhase.PENDING,
            value=AuthenticationStart(options=options, challenge_reference=challenge_reference),
        )

    def complete(
        self,
        session: SessionState,
        credential: Optional[Dict[str, Any]],
        challenge_reference: Optional[str] = None,
    ) -> StepResult[SessionUser]:
        pending = session.challenge
        if pending is None:
            return self._fail(session, StateError("No login in progress"))

        if challenge_reference and challenge_reference != pending.challenge_reference:
            logger.warning(
                "Login reference mismatch",
                username=pending.username,
                expected=pending.challenge_reference,
                received=challenge_reference,
            )
            return self._fail(session, StateError("Login does not match the one in progress"))
        if self.require_reference_echo and not challenge_reference:
            return self._fail(session, ValidationError("challengeReference is required"))
        if not credential or not isinstance(credential, dict):
            return self._fail(session, ValidationError("Credential is required"))

        cleared = session.with_challenge(None)

        if is_expired(pending.created_at, self.pending_ttl_seconds, now=self._clock()):
            logger.info("Login expired", username=pending.username)
            return self._fail(cleared, StateError("Login expired, please start again"))

        try:
            challenge = self.verifier.approve_challenge(pending.challenge_reference, credential)
        except UpstreamError as e:
            logger.error(
                "Login verification failed",
                username=pending.username,
                challenge_sid=pending.challenge_reference,
                error=str(e),
            )
            return self._fail(cleared, e)

        returned_sid = challenge.get("sid")
        if returned_sid and returned_sid != pending.challenge_reference:
            logger.warning(
                "Approved challenge does not match pending login",
                username=pending.username,
                expected=pending.challenge_reference,
                received=returned_sid,
            )
            return self._fail(
                cleared, StateError("Credential does not belong to the login in progress")
            )

        status = challenge.get("status")
        if status != APPROVED:
            logger.info("Login not approved", username=pending.username, status=status)
            return self._fail(cleared, AuthenticationError(f"Challenge status: {status}"))

        try:
            user = self.users.get(pending.username)
        except NotFoundError as e:
            return self._fail(cleared, e)

        session_user = SessionUser.from_user(user)
        logger.info("Login completed", username=user.username)
        return StepResult(
            session=cleared.with_user(session_user),
            phase=FlowPhase.COMPLETED,
            value=session_user,
        )
