"""
Passkey API routes.

Prefix: /api

Each two-phase step runs the flow in the threadpool (the verification service
client is blocking) under the session's lock, and the returned session state
is stored before any error is turned into an HTTP response.
"""

from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from passkey_auth.auth.authentication import AuthenticationFlow
from passkey_auth.auth.registration import RegistrationFlow
from passkey_auth.auth.results import StepResult
from passkey_auth.models.session import SessionState
from passkey_auth.utils.exceptions import UpstreamError
from passkey_auth.utils.logger import get_logger

from .deps import (
    get_authentication_flow,
    get_registration_flow,
    get_session_id,
    get_session_store,
    load_session_state,
    run_flow_step,
)
from .models import (
    CurrentUserResponse,
    LoginCompleteRequest,
    LoginCompleteResponse,
    LoginStartRequest,
    LoginStartResponse,
    LogoutResponse,
    PublicUser,
    RegisterCompleteRequest,
    RegisterCompleteResponse,
    RegisterStartRequest,
    RegisterStartResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["passkeys"])


async def _run(request: Request, step: Callable[..., StepResult], *args: Any, create: bool) -> StepResult:
    """
    Run one flow step against the caller's server-side session.

    start steps create a session on demand; complete steps without a live
    session run against an empty state and fail as out of order.
    """
    session_id = get_session_id(request, create=create)
    if session_id is None:
        return step(SessionState(), *args)
    return await run_in_threadpool(run_flow_step, get_session_store(request), session_id, step, *args)


def _finish(result: StepResult, action: str, upstream_message: str) -> Any:
    """Return the step's value or raise HTTPException for its error."""
    error = result.error
    if error is None:
        return result.value

    logger.warning(
        f"{action} failed",
        kind=error.kind.value,
        status_code=error.status_code,
        error=str(error),
        phase=result.phase.value,
    )
    detail = upstream_message if isinstance(error, UpstreamError) else error.public_message
    raise HTTPException(status_code=error.status_code, detail=detail)


@router.post("/register/start", response_model=RegisterStartResponse)
async def register_start(
    body: RegisterStartRequest,
    request: Request,
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> RegisterStartResponse:
    """
    Begin registration.

    Request:
        {"username": "...", "displayName": "..."}

    Response:
        {"success": true, "options": {...}, "factorReference": "YF..."}
    """
    result = await _run(request, flow.start, body.username, body.display_name, create=True)
    started = _finish(result, "Registration start", "Failed to start registration")
    return RegisterStartResponse(options=started.options, factor_reference=started.factor_reference)


@router.post("/register/complete", response_model=RegisterCompleteResponse)
async def register_complete(
    body: RegisterCompleteRequest,
    request: Request,
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> RegisterCompleteResponse:
    """
    Finish registration with the credential created by the browser.

    Request:
        {"credential": {...}, "factorReference": "YF..."}  (factorReference optional)
    """
    result = await _run(request, flow.complete, body.credential, body.factor_reference, create=False)
    username = _finish(result, "Registration complete", "Failed to complete registration")
    return RegisterCompleteResponse(username=username)


@router.post("/login/start", response_model=LoginStartResponse)
async def login_start(
    body: LoginStartRequest,
    request: Request,
    flow: AuthenticationFlow = Depends(get_authentication_flow),
) -> LoginStartResponse:
    """
    Begin login for a registered username.

    Response:
        {"success": true, "options": {...}, "challengeReference": "YC..."}
    """
    result = await _run(request, flow.start, body.username, create=True)
    started = _finish(result, "Login start", "Failed to start login")
    return LoginStartResponse(
        options=started.options, challenge_reference=started.challenge_reference
    )


@router.post("/login/complete", response_model=LoginCompleteResponse)
async def login_complete(
    body: LoginCompleteRequest,
    request: Request,
    flow: AuthenticationFlow = Depends(get_authentication_flow),
) -> LoginCompleteResponse:
    """
    Finish login with the assertion produced by the browser.

    401 if the challenge is not approved.
    """
    result = await _run(request, flow.complete, body.credential, body.challenge_reference, create=False)
    user = _finish(result, "Login complete", "Failed to complete login")
    return LoginCompleteResponse(
        user=PublicUser(username=user.username, display_name=user.display_name)
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(request: Request) -> LogoutResponse:
    """Destroy the server-side session, pending ceremonies included."""
    session_id = get_session_id(request)
    if session_id is not None:
        store = get_session_store(request)
        state = store.load(session_id)
        if state.user is not None:
            logger.info("User logged out", username=state.user.username)
        store.destroy(session_id)
    request.session.clear()
    return LogoutResponse()


@router.get("/user", response_model=CurrentUserResponse, response_model_exclude_none=True)
async def current_user(request: Request) -> CurrentUserResponse:
    state = load_session_state(request)
    if state.user is None:
        return CurrentUserResponse(authenticated=False)
    return CurrentUserResponse(
        authenticated=True,
        user=PublicUser(username=state.user.username, display_name=state.user.display_name),
    )


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}
