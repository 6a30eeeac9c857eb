"""Twilio Verify Passkeys API client"""

from typing import Any, Dict, Optional, Protocol, Tuple

import requests
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..utils.config import VerifySettings
from ..utils.exceptions import UpstreamError
from ..utils.logger import get_logger

logger = get_logger(__name__)

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class VerificationService(Protocol):
    """Ceremony issuance and verification, as consumed by the flows"""

    def create_factor(self, identity: str, display_name: str) -> Tuple[Dict[str, Any], str]: ...

    def verify_factor(self, factor_reference: str, credential: Dict[str, Any]) -> Dict[str, Any]: ...

    def create_challenge(self, identity: str) -> Tuple[Dict[str, Any], str]: ...

    def approve_challenge(self, challenge_reference: str, credential: Dict[str, Any]) -> Dict[str, Any]: ...


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, UpstreamError) and exc.transient


_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


class VerifyPasskeysClient:
    """Client for the Verify v2 Passkeys endpoints of one Verify service"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        service_sid: str,
        api_base: str = "https://verify.twilio.com/v2",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.service_sid = service_sid
        self.base_url = f"{api_base.rstrip('/')}/Services/{service_sid}/Passkeys"
        self.timeout = timeout
        self.session = session or requests.Session()
        # Basic auth on every call
        self.session.auth = (account_sid, auth_token)

    @classmethod
    def from_settings(cls, settings: VerifySettings) -> "VerifyPasskeysClient":
        settings.require_credentials()
        return cls(
            account_sid=settings.account_sid,
            auth_token=settings.auth_token,
            service_sid=settings.service_sid,
            api_base=settings.api_base,
            timeout=settings.timeout_seconds,
        )

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload and return the decoded JSON object.

        Raises:
            UpstreamError: transport failure, non-2xx status or malformed body.
                ``transient`` is set for failures worth retrying.
        """
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error("Verification request timeout", endpoint=endpoint, error=str(e))
            raise UpstreamError(f"Request timeout after {self.timeout} seconds", transient=True)
        except requests.exceptions.RequestException as e:
            logger.error("Verification request failed", endpoint=endpoint, error=str(e))
            raise UpstreamError(f"Request failed: {e}", transient=True)

        logger.debug(
            "Received response from verification service",
            endpoint=endpoint,
            status_code=response.status_code,
        )

        try:
            result = response.json()
        except ValueError:
            result = None

        if response.status_code >= 400:
            message = "Unknown error"
            code = None
            if isinstance(result, dict):
                message = result.get("message") or message
                code = result.get("code")
            raise UpstreamError(
                f"Verify API error: {message} (status: {response.status_code}, code: {code})",
                status=response.status_code,
                code=code,
                transient=response.status_code in TRANSIENT_STATUS_CODES,
            )

        if not isinstance(result, dict):
            raise UpstreamError(
                f"Verify API returned a malformed body (status: {response.status_code})",
                status=response.status_code,
            )
        return result

    @staticmethod
    def _options_and_sid(result: Dict[str, Any], what: str) -> Tuple[Dict[str, Any], str]:
        sid = result.get("sid")
        options = result.get("options")
        if not sid or not isinstance(options, dict):
            raise UpstreamError(f"Verify API did not return {what} options and sid")
        return options, sid

    @_retry_transient
    def create_factor(self, identity: str, display_name: str) -> Tuple[Dict[str, Any], str]:
        """
        Create a passkey factor for an identity.

        Returns:
            (credential creation options, factor sid)
        """
        result = self._post("Factors", {"friendly_name": display_name, "identity": identity})
        options, sid = self._options_and_sid(result, "factor")
        logger.info("Passkey factor created", identity=identity, factor_sid=sid)
        return options, sid

    def verify_factor(self, factor_reference: str, credential: Dict[str, Any]) -> Dict[str, Any]:
        """
        Verify the attestation produced by the registration ceremony.

        The service identifies the factor from the credential itself; the
        returned record carries its sid so callers can check it.
        """
        result = self._post("VerifyFactor", credential)
        logger.info(
            "Passkey factor verified",
            factor_sid=factor_reference,
            returned_sid=result.get("sid"),
            status=result.get("status"),
        )
        return result

    @_retry_transient
    def create_challenge(self, identity: str) -> Tuple[Dict[str, Any], str]:
        """
        Create an authentication challenge for an identity.

        Returns:
            (credential request options, challenge sid)
        """
        result = self._post("Challenges", {"identity": identity})
        options, sid = self._options_and_sid(result, "challenge")
        logger.info("Passkey challenge created", identity=identity, challenge_sid=sid)
        return options, sid

    def approve_challenge(self, challenge_reference: str, credential: Dict[str, Any]) -> Dict[str, Any]:
        """Submit the assertion for a challenge; the result carries its status."""
        result = self._post("ApproveChallenge", credential)
        logger.info(
            "Passkey challenge submitted",
            challenge_sid=challenge_reference,
            returned_sid=result.get("sid"),
            status=result.get("status"),
        )
        return result


class UnconfiguredVerificationService:
    """Stands in until credentials are configured; every call fails as upstream."""

    def __init__(self, reason: str):
        self.reason = reason

    def _fail(self, *args: Any, **kwargs: Any):
        raise UpstreamError(f"Verification service is not configured: {self.reason}")

    create_factor = _fail
    verify_factor = _fail
    create_challenge = _fail
    approve_challenge = _fail
