"""
Client-side driver for the passkey ceremonies.

Bridges the server's two-phase flows to the platform credential ceremony:

    register: /api/register/start -> platform.create -> /api/register/complete
    login:    /api/login/start    -> platform.get    -> /api/login/complete

Every ceremony waits on a one-shot readiness signal first. Failures are
classified into cancelled / duplicate credential / generic and turned into a
user-facing message; nothing is retried.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests

from ..utils.logger import get_logger
from .codec import decode_creation_options, decode_request_options, encode_credential
from .platform import (
    CeremonyCancelled,
    CeremonyError,
    CredentialExcluded,
    Platform,
    PlatformUnsupported,
)

logger = get_logger(__name__)

UNSUPPORTED_MESSAGE = "This browser does not support passkeys. Please use a recent browser."
NOT_READY_MESSAGE = "Passkey support did not finish loading"


class CeremonyOutcome(str, Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    DUPLICATE_CREDENTIAL = "duplicate_credential"
    FAILED = "failed"


class View(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    DASHBOARD = "dashboard"


@dataclass(frozen=True)
class CeremonyResult:
    outcome: CeremonyOutcome
    message: str
    username: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is CeremonyOutcome.SUCCESS


class ServerRejected(CeremonyError):
    """The server answered a flow step with an error status"""

    def __init__(self, message: str, status_code: int):
        self.status_code = status_code
        super().__init__(message)


# (cancelled, duplicate, generic prefix) per ceremony
_REGISTER_MESSAGES = (
    "Passkey creation was cancelled",
    "A passkey is already registered on this device",
    "Registration error",
)
_LOGIN_MESSAGES = (
    "Authentication was cancelled",
    "No passkey found",
    "Login error",
)


def classify(error: Exception) -> CeremonyOutcome:
    if isinstance(error, CeremonyCancelled):
        return CeremonyOutcome.CANCELLED
    if isinstance(error, CredentialExcluded):
        return CeremonyOutcome.DUPLICATE_CREDENTIAL
    return CeremonyOutcome.FAILED


class ClientCeremonyOrchestrator:
    """
    Drives registration and login against the passkey API.

    Args:
        platform: Performs the credential ceremonies
        http: requests-compatible session (cookies must persist between calls)
        base_url: Server root, e.g. http://localhost:3000
        ready_timeout: Seconds to wait for mark_ready() before failing a ceremony
    """

    def __init__(
        self,
        platform: Platform,
        http: Optional[Any] = None,
        base_url: str = "http://localhost:3000",
        ready_timeout: float = 10.0,
    ):
        self.platform = platform
        self.http = http if http is not None else requests.Session()
        self.base_url = base_url.rstrip("/")
        self.ready_timeout = ready_timeout
        self._ready = threading.Event()

        self.view = View.LOGIN
        self.current_user: Optional[Dict[str, str]] = None
        self.prefill_username: Optional[str] = None
        self.message: Optional[str] = None

        self.supported = self._check_support()

    def _check_support(self) -> bool:
        if not self.platform.supports_public_key_credentials():
            self.message = UNSUPPORTED_MESSAGE
            logger.warning("Public-key credentials not supported")
            return False
        try:
            if not self.platform.platform_authenticator_available():
                logger.warning("Platform authenticator not available, roaming authenticators may still work")
        except CeremonyError as e:
            logger.error("Error checking platform authenticator", error=str(e))
        return True

    def mark_ready(self) -> None:
        """Signal that the ceremony support code finished initializing. Idempotent."""
        self._ready.set()

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    def _wait_until_ready(self) -> None:
        if not self.supported:
            raise PlatformUnsupported(UNSUPPORTED_MESSAGE)
        if not self._ready.wait(timeout=self.ready_timeout):
            raise CeremonyError(NOT_READY_MESSAGE)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        if method == "GET":
            response = self.http.get(url)
        else:
            response = self.http.post(url, json=payload)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            detail = body.get("detail") if isinstance(body, dict) else None
            raise ServerRejected(str(detail or f"HTTP {response.status_code}"), response.status_code)
        return body

    def _failure(self, error: Exception, messages: tuple, action: str) -> CeremonyResult:
        outcome = classify(error)
        cancelled, duplicate, prefix = messages
        if outcome is CeremonyOutcome.CANCELLED:
            message = cancelled
        elif outcome is CeremonyOutcome.DUPLICATE_CREDENTIAL:
            message = duplicate
        else:
            message = f"{prefix}: {error}"
        logger.info(f"{action} failed", outcome=outcome.value, error=str(error))
        self.message = message
        return CeremonyResult(outcome=outcome, message=message)

    def register(self, username: str, display_name: str) -> CeremonyResult:
        """Create a passkey for a new account; on success the login form is shown prefilled."""
        self.message = None
        try:
            self._wait_until_ready()
            started = self._request(
                "POST", "/api/register/start", {"username": username, "displayName": display_name}
            )
            creation_options = decode_creation_options(started["options"])
            credential = encode_credential(self.platform.create(creation_options))
            completed = self._request(
                "POST",
                "/api/register/complete",
                {"credential": credential, "factorReference": started.get("factorReference")},
            )
        except Exception as e:
            return self._failure(e, _REGISTER_MESSAGES, "Registration")

        self.message = "Registration complete! Please log in."
        self.view = View.LOGIN
        self.prefill_username = completed.get("username", username)
        return CeremonyResult(
            outcome=CeremonyOutcome.SUCCESS,
            message=self.message,
            username=self.prefill_username,
            display_name=display_name,
        )

    def login(self, username: str) -> CeremonyResult:
        """Authenticate with an existing passkey; on success the dashboard is shown."""
        self.message = None
        try:
            self._wait_until_ready()
            started = self._request("POST", "/api/login/start", {"username": username})
            request_options = decode_request_options(started["options"])
            credential = encode_credential(self.platform.get(request_options))
            completed = self._request(
                "POST",
                "/api/login/complete",
                {"credential": credential, "challengeReference": started.get("challengeReference")},
            )
        except Exception as e:
            return self._failure(e, _LOGIN_MESSAGES, "Login")

        user = completed["user"]
        self._show_dashboard(user)
        return CeremonyResult(
            outcome=CeremonyOutcome.SUCCESS,
            message="Login successful",
            username=user["username"],
            display_name=user["displayName"],
        )

    def _show_dashboard(self, user: Dict[str, str]) -> None:
        self.current_user = user
        self.view = View.DASHBOARD

    def check_session(self) -> bool:
        """Restore the dashboard if the server reports an authenticated session."""
        try:
            data = self._request("GET", "/api/user")
        except Exception as e:
            logger.error("Session check error", error=str(e))
            return False
        if data.get("authenticated"):
            self._show_dashboard(data["user"])
            return True
        return False

    def logout(self) -> None:
        try:
            self._request("POST", "/api/logout")
        except Exception as e:
            self.message = f"Logout error: {e}"
            return
        self.current_user = None
        self.view = View.LOGIN
        self.message = "Logged out"

    def show_register(self) -> None:
        self.view = View.REGISTER
        self.message = None

    def show_login(self) -> None:
        self.view = View.LOGIN
        self.message = None
