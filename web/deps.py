"""
FastAPI dependencies for sessions and the flows.

The signed cookie (Starlette's request.session) carries only the session id.
SessionState lives in the server-side store on app.state.sessions; flow steps
never touch either directly. run_flow_step loads the state, runs one step and
writes the returned state back while holding the session's lock.
"""

from typing import Any, Callable, Optional

from fastapi import Request

from passkey_auth.auth.authentication import AuthenticationFlow
from passkey_auth.auth.registration import RegistrationFlow
from passkey_auth.auth.results import StepResult
from passkey_auth.models.session import SessionState
from passkey_auth.services.session_store import SessionStore

SESSION_ID_KEY = "sid"


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_session_id(request: Request, create: bool = False) -> Optional[str]:
    """
    Session id from the cookie, if the server still knows it.

    With create=True an unknown or missing id is replaced by a fresh session.
    """
    store = get_session_store(request)
    session_id = request.session.get(SESSION_ID_KEY)
    if session_id and store.exists(session_id):
        return session_id
    if not create:
        return None
    session_id = store.create()
    request.session[SESSION_ID_KEY] = session_id
    return session_id


def load_session_state(request: Request) -> SessionState:
    session_id = get_session_id(request)
    if session_id is None:
        return SessionState()
    return get_session_store(request).load(session_id)


def run_flow_step(
    store: SessionStore, session_id: str, step: Callable[..., StepResult], *args: Any
) -> StepResult:
    """Blocking; meant for run_in_threadpool."""
    with store.lock(session_id):
        result = step(store.load(session_id), *args)
        store.save(session_id, result.session)
    return result


def get_registration_flow(request: Request) -> RegistrationFlow:
    return request.app.state.registration_flow


def get_authentication_flow(request: Request) -> AuthenticationFlow:
    return request.app.state.authentication_flow
