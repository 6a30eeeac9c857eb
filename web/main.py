"""FastAPI application for the passkey demo"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from passkey_auth import __version__
from passkey_auth.api.verify_client import (
    UnconfiguredVerificationService,
    VerificationService,
    VerifyPasskeysClient,
)
from passkey_auth.auth.authentication import AuthenticationFlow
from passkey_auth.auth.registration import RegistrationFlow
from passkey_auth.services.session_store import InMemorySessionStore, SessionStore
from passkey_auth.services.user_store import InMemoryUserDirectory, UserDirectory
from passkey_auth.utils.config import DEFAULT_SESSION_SECRET, Settings, load_settings
from passkey_auth.utils.exceptions import ConfigError
from passkey_auth.utils.logger import get_logger

from .api import router as api_router

logger = get_logger(__name__)


def _build_verifier(settings: Settings) -> VerificationService:
    try:
        return VerifyPasskeysClient.from_settings(settings.verify)
    except ConfigError as e:
        # Keep serving /api/user and /api/health; ceremonies fail with 500 until configured
        logger.warning("Verification service not configured", error=str(e))
        return UnconfiguredVerificationService(str(e))


def create_app(
    settings: Optional[Settings] = None,
    users: Optional[UserDirectory] = None,
    verify_client: Optional[VerificationService] = None,
    sessions: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Build the application.

    users, verify_client and sessions can be injected (tests, alternative backends);
    by default in-memory stores and the Twilio Verify client are used.
    """
    settings = settings or load_settings()
    users = users if users is not None else InMemoryUserDirectory()
    verifier = verify_client if verify_client is not None else _build_verifier(settings)

    app = FastAPI(
        title="Passkey Demo",
        description="Passwordless login with passkeys verified by Twilio Verify",
        version=__version__,
    )

    app.state.settings = settings
    app.state.users = users
    app.state.sessions = (
        sessions
        if sessions is not None
        else InMemorySessionStore(max_age_seconds=settings.session.max_age_seconds)
    )
    app.state.registration_flow = RegistrationFlow(
        users,
        verifier,
        pending_ttl_seconds=settings.session.pending_ttl_seconds,
        require_reference_echo=settings.session.require_reference_echo,
    )
    app.state.authentication_flow = AuthenticationFlow(
        users,
        verifier,
        pending_ttl_seconds=settings.session.pending_ttl_seconds,
        require_reference_echo=settings.session.require_reference_echo,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session.secret,
        session_cookie=settings.session.cookie_name,
        max_age=settings.session.max_age_seconds,
        same_site="lax",
        https_only=settings.app.is_production,
    )
    # Added last so it wraps the session middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected malformed request", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(status_code=400, content={"detail": "Invalid request body"})

    app.include_router(api_router)

    if settings.session.secret == DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET not set, using the demo default")

    return app
