from fastapi import APIRouter, Body, Depends, Path
from pydantic import BaseModel, Field
from typing import Any, Dict
import logging

from ..auth.dependencies import gate, get_sync_manager
from ..auth.session import SessionState
from ..core.exceptions import PortalError, to_http_exception
from ..database.collections import COLLECTIONS
from ..models.records import FeedbackStatus
from ..services.feedback_service import ADMIN_AUTHOR, RESIDENT_AUTHOR, FeedbackService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["feedback"])

require_feedback_page = gate("/feedback")
require_admin_feedback_page = gate("/admin/feedback")


class ReplyRequest(BaseModel):
    message: str


class StatusRequest(BaseModel):
    status: FeedbackStatus = Field(..., description="Pending, In Review or Resolved")


def get_feedback_service(sync=Depends(get_sync_manager)) -> FeedbackService:
    return FeedbackService(sync)


def _json(record):
    return record.model_dump(mode="json")


# ===== Resident side =====

@router.get("/feedback")
async def my_feedback(
    session: SessionState = Depends(require_feedback_page),
    feedback: FeedbackService = Depends(get_feedback_service),
):
    try:
        items = await feedback.for_user(session.uid)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "data": [_json(f) for f in items], "count": len(items)}


@router.post("/feedback", status_code=201)
async def submit_feedback(
    fields: Dict[str, Any] = Body(...),
    session: SessionState = Depends(require_feedback_page),
    feedback: FeedbackService = Depends(get_feedback_service),
):
    try:
        record = await feedback.submit(session.uid, session.email, fields, profile=session.profile)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "message": "Feedback submitted successfully!", "data": _json(record)}


@router.post("/feedback/{feedback_id}/replies")
async def resident_reply(
    body: ReplyRequest,
    feedback_id: str = Path(...),
    session: SessionState = Depends(require_feedback_page),
    feedback: FeedbackService = Depends(get_feedback_service),
):
    try:
        changes = await feedback.reply(feedback_id, body.message, RESIDENT_AUTHOR, author_id=session.uid)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "message": "Reply sent successfully!", "replies": changes["replies"]}


# ===== Admin side =====

@router.get("/admin/feedback")
async def all_feedback(
    session: SessionState = Depends(require_admin_feedback_page),
    sync=Depends(get_sync_manager),
):
    try:
        items = await sync.get_all(COLLECTIONS['feedback'])
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "data": [_json(f) for f in items], "count": len(items)}


@router.post("/admin/feedback/{feedback_id}/replies")
async def admin_reply(
    body: ReplyRequest,
    feedback_id: str = Path(...),
    session: SessionState = Depends(require_admin_feedback_page),
    feedback: FeedbackService = Depends(get_feedback_service),
):
    try:
        changes = await feedback.reply(feedback_id, body.message, ADMIN_AUTHOR, author_id=session.uid)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "message": "Reply sent successfully", "replies": changes["replies"]}


@router.patch("/admin/feedback/{feedback_id}/status")
async def set_status(
    body: StatusRequest,
    feedback_id: str = Path(...),
    session: SessionState = Depends(require_admin_feedback_page),
    feedback: FeedbackService = Depends(get_feedback_service),
):
    try:
        await feedback.set_status(feedback_id, body.status.value)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "message": f"Status updated to {body.status.value}"}


@router.delete("/admin/feedback/{feedback_id}")
async def delete_feedback(
    feedback_id: str = Path(...),
    session: SessionState = Depends(require_admin_feedback_page),
    sync=Depends(get_sync_manager),
):
    try:
        removed = await sync.remove(COLLECTIONS['feedback'], feedback_id, session.uid, session.email)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "removed": removed}
