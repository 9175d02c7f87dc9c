from datetime import datetime, timezone
from typing import Dict, Optional
import logging

from ..core.exceptions import NotFoundError, RecordValidationError
from ..database.collections import COLLECTIONS
from ..models.records import Record

logger = logging.getLogger(__name__)


class VotingError(RecordValidationError):
    """A vote the event cannot accept (locked, unknown option, repeat voter)."""

    def __init__(self, message: str):
        super().__init__({"vote": message}, COLLECTIONS['voting'])
        self.message = message


class VotingService:
    def __init__(self, sync_manager):
        self.sync = sync_manager

    async def _get_event(self, event_id: str) -> Record:
        event = await self.sync.get(COLLECTIONS['voting'], event_id)
        if event is None:
            raise NotFoundError(COLLECTIONS['voting'], event_id)
        return event

    async def has_voted(self, event_id: str, uid: str) -> bool:
        votes = await self.sync.query(COLLECTIONS['user_votes'], "userId", uid)
        return any(getattr(vote, "eventId", None) == event_id for vote in votes)

    async def user_votes(self, uid: str) -> Dict[str, str]:
        """eventId -> optionId for everything this user has voted on"""
        votes = await self.sync.query(COLLECTIONS['user_votes'], "userId", uid)
        return {vote.eventId: vote.optionId for vote in votes if getattr(vote, "eventId", None)}

    async def cast_vote(self, event_id: str, option_id: str, uid: str, email: Optional[str] = None) -> Record:
        event = await self._get_event(event_id)

        if getattr(event, "locked", False):
            raise VotingError("This event is locked and cannot accept votes")

        options = [dict(option) if isinstance(option, dict) else option.model_dump() for option in getattr(event, "options", [])]
        if not any(option.get("id") == option_id for option in options):
            raise VotingError("Selected option does not exist")

        if await self.has_voted(event_id, uid):
            raise VotingError("You have already voted in this event")

        vote = await self.sync.add(COLLECTIONS['user_votes'], {
            "eventId": event_id,
            "optionId": option_id,
            "userId": uid,
            "userEmail": email,
            "votedAt": datetime.now(timezone.utc).isoformat(),
        })

        for option in options:
            if option.get("id") == option_id:
                option["votes"] = (option.get("votes") or 0) + 1
        await self.sync.update(COLLECTIONS['voting'], event_id, {"options": options})

        logger.info(f"Vote recorded: {uid} -> {event_id}/{option_id}")
        return vote

    async def toggle_lock(self, event_id: str) -> bool:
        event = await self._get_event(event_id)
        locked = not getattr(event, "locked", False)
        await self.sync.update(COLLECTIONS['voting'], event_id, {"locked": locked})
        logger.info(f"Voting event {event_id} {'locked' if locked else 'unlocked'}")
        return locked

    async def participants(self, event_id: str) -> int:
        votes = await self.sync.query(COLLECTIONS['user_votes'], "eventId", event_id)
        return len({vote.userId for vote in votes})
