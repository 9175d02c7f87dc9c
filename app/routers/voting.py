from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import gate, get_sync_manager
from ..auth.session import SessionState
from ..core.exceptions import PortalError, to_http_exception
from ..services.voting_service import VotingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/voting", tags=["voting"])


class CastVoteRequest(BaseModel):
    optionId: str = Field(..., min_length=1)


def get_voting_service(sync=Depends(get_sync_manager)) -> VotingService:
    return VotingService(sync)


@router.get("/my-votes")
async def my_votes(
    session: SessionState = Depends(gate("/vote")),
    voting: VotingService = Depends(get_voting_service),
):
    """eventId -> optionId for the signed-in resident"""
    try:
        return {"success": True, "data": await voting.user_votes(session.uid)}
    except PortalError as e:
        raise to_http_exception(e)


@router.post("/{event_id}/vote", status_code=201)
async def cast_vote(
    body: CastVoteRequest,
    event_id: str = Path(...),
    session: SessionState = Depends(gate("/vote")),
    voting: VotingService = Depends(get_voting_service),
):
    try:
        vote = await voting.cast_vote(event_id, body.optionId, session.uid, session.email)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "message": "Vote submitted successfully!", "data": vote.model_dump(mode="json")}


@router.post("/{event_id}/lock")
async def toggle_lock(
    event_id: str = Path(...),
    session: SessionState = Depends(gate("/admin/voting")),
    voting: VotingService = Depends(get_voting_service),
):
    try:
        locked = await voting.toggle_lock(event_id)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "locked": locked, "message": "Event locked" if locked else "Event unlocked"}


@router.get("/{event_id}/participants")
async def participants(
    event_id: str = Path(...),
    session: SessionState = Depends(gate("/admin/voting")),
    voting: VotingService = Depends(get_voting_service),
):
    try:
        return {"success": True, "participants": await voting.participants(event_id)}
    except PortalError as e:
        raise to_http_exception(e)
