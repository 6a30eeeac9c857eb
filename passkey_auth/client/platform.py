"""
Platform credential ceremony interface.

A Platform wraps whatever performs the WebAuthn ceremony on the client
(browser bridge, OS authenticator API, test double). Implementations raise
the typed errors below so the orchestrator never inspects error text.
"""

from typing import Any, Dict, Protocol


class CeremonyError(Exception):
    """Base class for client-side ceremony failures"""
    pass


class CeremonyCancelled(CeremonyError):
    """User dismissed the ceremony or it timed out (NotAllowedError)"""
    pass


class CredentialExcluded(CeremonyError):
    """Authenticator refused: credential already registered / not usable (InvalidStateError)"""
    pass


class PlatformUnsupported(CeremonyError):
    """Public-key credentials are not available on this platform"""
    pass


_NAMED_ERRORS = {
    "NotAllowedError": CeremonyCancelled,
    "AbortError": CeremonyCancelled,
    "InvalidStateError": CredentialExcluded,
    "NotSupportedError": PlatformUnsupported,
}


def ceremony_error(name: str, message: str = "") -> CeremonyError:
    """
    Translate a named platform error (DOMException name) into a typed error.

    Meant for Platform adapters; unknown names become a plain CeremonyError.
    """
    error_cls = _NAMED_ERRORS.get(name, CeremonyError)
    return error_cls(message or name)


class Platform(Protocol):
    def supports_public_key_credentials(self) -> bool: ...

    def platform_authenticator_available(self) -> bool: ...

    def create(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """Run the creation ceremony; returns the credential with binary fields as bytes."""
        ...

    def get(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """Run the assertion ceremony; returns the credential with binary fields as bytes."""
        ...
