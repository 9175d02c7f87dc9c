from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel
from typing import Any, Dict
import logging

from ..auth.dependencies import gate, get_sync_manager
from ..auth.session import SessionState
from ..core.exceptions import PortalError, to_http_exception
from ..database.collections import COLLECTIONS
from ..services.event_service import EventService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/registrations", tags=["events"])


class RegistrationRequest(BaseModel):
    responses: Dict[str, Any] = {}


def get_event_service(sync=Depends(get_sync_manager)) -> EventService:
    return EventService(sync)


@router.get("/mine")
async def my_registrations(
    session: SessionState = Depends(gate("/events")),
    sync=Depends(get_sync_manager),
):
    try:
        records = await sync.query(COLLECTIONS['event_registrations'], "userId", session.uid)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "data": [r.model_dump(mode="json") for r in records]}


@router.post("/{event_id}", status_code=201)
async def register(
    body: RegistrationRequest,
    event_id: str = Path(...),
    session: SessionState = Depends(gate("/events")),
    events: EventService = Depends(get_event_service),
):
    user_name = getattr(session.profile, "fullName", None)
    try:
        record = await events.register(event_id, session.uid, session.email, body.responses, user_name=user_name)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "message": "Successfully registered for the event!", "data": record.model_dump(mode="json")}


@router.get("/{event_id}")
async def registrations_for_event(
    event_id: str = Path(...),
    session: SessionState = Depends(gate("/admin/events")),
    events: EventService = Depends(get_event_service),
):
    try:
        records = await events.registrations_for(event_id)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "data": [r.model_dump(mode="json") for r in records], "count": len(records)}
