from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from urllib.parse import urlencode
import logging

from .access_gate import (
    Admitted,
    Forbidden,
    ForbiddenReason,
    GateOutcome,
    Unauthenticated,
    Unresolved,
    destination_for,
)
from .firebase_auth import firebase_auth
from .session import SessionRegistry, SessionState
from ..core.config import settings

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def get_sync_manager(request: Request):
    return request.app.state.sync_manager


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """
    Resolve the bearer token into a live session. Missing or invalid tokens
    give a signed-out session; the gate decides what that means.
    """
    if credentials is None:
        return registry.anonymous()

    user_data = await firebase_auth.verify_token(credentials.credentials)
    if not user_data:
        logger.warning("[Auth] Token verification failed - treating request as signed out")
        return registry.anonymous()

    session = registry.session_for(user_data.get("uid"), user_data.get("email"))
    await session.wait_until_loaded()
    return session


def _frontend_url(path: str, **params) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return f"{settings.FRONTEND_URL}{path}" + (f"?{query}" if query else "")


def outcome_to_http(outcome: GateOutcome) -> Optional[HTTPException]:
    """
    Map a non-admitted gate outcome to the response that replaces the page.
    Denials are plain redirects that never say why access was refused.
    """
    if isinstance(outcome, Admitted):
        return None
    if isinstance(outcome, Unresolved):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Loading...",
            headers={"Retry-After": "1"},
        )
    if isinstance(outcome, Unauthenticated):
        location = _frontend_url(outcome.sign_in_path, next=outcome.return_to)
    elif isinstance(outcome, Forbidden) and outcome.reason == ForbiddenReason.DECLINED:
        location = _frontend_url(outcome.redirect_to, reason=outcome.decline_reason or None)
    else:
        location = _frontend_url(outcome.redirect_to)
    return HTTPException(status_code=status.HTTP_302_FOUND, headers={"Location": location})


def gate(path: str):
    """
    Dependency factory guarding a protected destination, e.g.
    ``Depends(gate("/feedback"))``. Returns the admitted SessionState.
    """
    destination = destination_for(path)

    async def checker(session: SessionState = Depends(get_session)) -> SessionState:
        outcome = session.evaluate(destination)
        denial = outcome_to_http(outcome)
        if denial is not None:
            logger.info(f"[Gate] {path}: {type(outcome).__name__} for {session.uid or 'anonymous'}")
            raise denial
        return session

    return checker


# Area-level shortcuts
require_admin = gate("/admin/dashboard")
require_resident = gate("/announcements")
require_verified_resident = gate("/dashboard")
