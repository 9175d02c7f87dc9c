from fastapi import APIRouter, Body, Depends, HTTPException, Path
from typing import Any, Dict
import logging

from ..auth.dependencies import gate, get_sync_manager
from ..auth.session import SessionState
from ..core.exceptions import PortalError, to_http_exception
from ..database.collections import COLLECTIONS
from ..models.user import DeclineRequest, UserRole
from ..services.account_service import AccountService
from ..services.verification_service import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["residents"])

require_residents_page = gate("/admin/residents")
require_accounts_page = gate("/admin/accounts")


def get_verification_service(sync=Depends(get_sync_manager)) -> VerificationService:
    return VerificationService(sync)


# ===== Resident verification =====

@router.get("/residents")
async def list_residents(
    session: SessionState = Depends(require_residents_page),
    sync=Depends(get_sync_manager),
):
    try:
        residents = await sync.query(COLLECTIONS['users'], "role", UserRole.RESIDENT.value)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "data": [r.model_dump(mode="json") for r in residents], "count": len(residents)}


@router.get("/residents/pending")
async def list_pending(
    session: SessionState = Depends(require_residents_page),
    verification: VerificationService = Depends(get_verification_service),
):
    try:
        pending = await verification.list_pending()
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "data": [r.model_dump(mode="json") for r in pending], "count": len(pending)}


@router.post("/residents/{uid}/approve")
async def approve_resident(
    uid: str = Path(...),
    session: SessionState = Depends(require_residents_page),
    verification: VerificationService = Depends(get_verification_service),
):
    try:
        result = await verification.approve(uid, approved_by=session.email)
    except PortalError as e:
        raise to_http_exception(e)
    return result.model_dump(mode="json")


@router.post("/residents/{uid}/decline")
async def decline_resident(
    body: DeclineRequest,
    uid: str = Path(...),
    session: SessionState = Depends(require_residents_page),
    verification: VerificationService = Depends(get_verification_service),
):
    try:
        result = await verification.decline(uid, body.reason, declined_by=session.email)
    except PortalError as e:
        raise to_http_exception(e)
    return result.model_dump(mode="json")


# ===== Admin accounts =====

@router.get("/accounts")
async def list_admins(
    session: SessionState = Depends(require_accounts_page),
    sync=Depends(get_sync_manager),
):
    try:
        admins = await AccountService(sync).list_admins()
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "data": [a.model_dump(mode="json") for a in admins], "count": len(admins)}


@router.post("/accounts", status_code=201)
async def create_admin(
    form: Dict[str, Any] = Body(...),
    session: SessionState = Depends(require_accounts_page),
    sync=Depends(get_sync_manager),
):
    try:
        profile = await AccountService(sync).register_admin(form, created_by=session.email)
    except PortalError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("Admin account creation failed")
        raise HTTPException(status_code=400, detail=f"Failed to create admin account: {str(e)}")
    return {"success": True, "uid": profile.id, "message": "Admin account created successfully"}


@router.delete("/accounts/{uid}")
async def delete_admin(
    uid: str = Path(...),
    session: SessionState = Depends(require_accounts_page),
    sync=Depends(get_sync_manager),
):
    try:
        removed = await AccountService(sync).delete_admin(uid, session.uid, session.email)
    except PortalError as e:
        raise to_http_exception(e)
    if not removed:
        raise HTTPException(status_code=404, detail="Admin account not found")
    return {"success": True, "removed": True}
