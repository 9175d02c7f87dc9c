"""
Sign-in, signup and session routes.

- Login: email + password (Firebase REST). The response says where the user
  lands: the requested page when verified, else the pending / declined page.
- Admin login: same check, refused for any profile whose role is not admin.
- Signup: resident registration; the account starts out pending.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr

from ..auth.access_gate import DECLINED_PAGE
from ..auth.dependencies import gate, get_session_registry, get_sync_manager
from ..auth.session import SessionRegistry, SessionState
from ..core.exceptions import PortalError, to_http_exception
from ..services.account_service import AccountService
from ..services.verification_service import VerificationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["authentication"])


class EmailPasswordLogin(BaseModel):
    email: EmailStr
    password: str


class Resubmission(BaseModel):
    purok: str = ""
    houseNumber: str = ""
    contactNumber: str = ""
    proofUrl: Optional[str] = None


def get_account_service(sync=Depends(get_sync_manager)) -> AccountService:
    return AccountService(sync)


async def _login(body: EmailPasswordLogin, accounts: AccountService, admin: bool, next_path: Optional[str]):
    try:
        result = await accounts.sign_in(body.email, body.password, admin=admin, next_path=next_path)
    except PortalError as e:
        raise to_http_exception(e)
    except Exception:
        logger.exception("Email/password login failed")
        raise HTTPException(status_code=400, detail="Login failed. Please try again.")

    if result is None:
        detail = "Access denied. Admin privileges required." if admin else "Incorrect email or password."
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
    return {"message": "Login successful! Redirecting...", **result}


@router.post("/login", response_model=dict)
async def login(
    body: EmailPasswordLogin,
    next: Optional[str] = Query(None, description="Page the user was sent away from"),
    accounts: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    return await _login(body, accounts, admin=False, next_path=next)


@router.post("/admin/login", response_model=dict)
async def admin_login(
    body: EmailPasswordLogin,
    next: Optional[str] = Query(None),
    accounts: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    return await _login(body, accounts, admin=True, next_path=next)


@router.post("/signup", response_model=dict, status_code=201)
async def signup(
    form: Dict[str, Any] = Body(...),
    accounts: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    try:
        profile = await accounts.register_resident(form)
    except PortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("Resident signup failed")
        raise HTTPException(status_code=400, detail=f"Signup failed: {str(e)}")
    return {
        "message": "Registration submitted. Your account is pending verification.",
        "uid": profile.id,
        "status": profile.status,
    }


@router.get("/me", response_model=dict)
async def me(session: SessionState = Depends(gate("/profile"))) -> Dict[str, Any]:
    profile = session.profile
    return {
        "uid": session.uid,
        "email": session.email,
        "profile": profile.model_dump(mode="json") if profile else None,
    }


@router.post("/verification/resubmit", response_model=dict)
async def resubmit_verification(
    body: Resubmission,
    session: SessionState = Depends(gate(DECLINED_PAGE)),
    sync=Depends(get_sync_manager),
) -> Dict[str, Any]:
    try:
        await VerificationService(sync).resubmit(
            session.uid, body.purok, body.houseNumber, body.contactNumber, body.proofUrl
        )
    except PortalError as e:
        raise to_http_exception(e)
    return {"message": "Verification resubmitted successfully!"}


@router.post("/logout", response_model=dict)
async def logout(
    session: SessionState = Depends(gate("/profile")),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Dict[str, Any]:
    """Drop the live session and its profile subscription."""
    registry.end(session.uid)
    return {"message": "logged out successfully"}
