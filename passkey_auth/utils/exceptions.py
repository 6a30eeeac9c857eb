"""Custom exceptions for the passkey authentication flows"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories surfaced by the flows"""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    STATE = "state"
    AUTHENTICATION = "authentication"
    UPSTREAM = "upstream"


class PasskeyError(Exception):
    """Base exception for flow failures.

    ``public_message`` is what the HTTP layer returns to the caller; the
    exception text may carry more detail for the logs.
    """

    kind: ErrorKind
    status_code: int = 500
    public_message: str = "Request failed"

    def __init__(self, message: str, public_message: Optional[str] = None):
        super().__init__(message)
        if public_message is not None:
            self.public_message = public_message


class ValidationError(PasskeyError):
    """Missing or malformed input"""

    kind = ErrorKind.VALIDATION
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, public_message=message)


class ConflictError(PasskeyError):
    """Username is already registered"""

    kind = ErrorKind.CONFLICT
    status_code = 400
    public_message = "User already exists"


class NotFoundError(PasskeyError):
    """Username is not registered"""

    kind = ErrorKind.NOT_FOUND
    status_code = 404
    public_message = "User not found"


class StateError(PasskeyError):
    """complete called without a matching pending start"""

    kind = ErrorKind.STATE
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, public_message=message)


class AuthenticationError(PasskeyError):
    """Challenge was not approved"""

    kind = ErrorKind.AUTHENTICATION
    status_code = 401
    public_message = "Authentication failed"


class UpstreamError(PasskeyError):
    """Verification service unavailable or rejected the call"""

    kind = ErrorKind.UPSTREAM
    status_code = 500

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[int] = None,
        transient: bool = False,
    ):
        self.status = status
        self.code = code
        self.transient = transient
        super().__init__(message)


class ConfigError(Exception):
    """Configuration error"""
    pass
