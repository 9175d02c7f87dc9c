from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from ..core.exceptions import NotFoundError, RecordValidationError
from ..database.collections import COLLECTIONS
from ..models.records import Record

logger = logging.getLogger(__name__)


def missing_required_fields(event: Record, responses: Dict[str, Any]) -> Dict[str, str]:
    """Required registration fields keyed by label, same as the form shows them."""
    errors = {}
    for field in getattr(event, "registrationFields", []) or []:
        definition = field if isinstance(field, dict) else field.model_dump()
        if not definition.get("required"):
            continue
        key = definition.get("id") or definition.get("label")
        value = responses.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[key] = f'Please fill in "{definition.get("label")}"'
    return errors


class EventService:
    def __init__(self, sync_manager):
        self.sync = sync_manager

    async def registrations_for(self, event_id: str) -> List[Record]:
        return await self.sync.query(COLLECTIONS['event_registrations'], "eventId", event_id)

    async def is_registered(self, event_id: str, uid: str) -> bool:
        registrations = await self.sync.query(COLLECTIONS['event_registrations'], "userId", uid)
        return any(getattr(r, "eventId", None) == event_id for r in registrations)

    async def register(
        self,
        event_id: str,
        uid: str,
        email: Optional[str],
        responses: Dict[str, Any],
        user_name: Optional[str] = None,
    ) -> Record:
        event = await self.sync.get(COLLECTIONS['events'], event_id)
        if event is None:
            raise NotFoundError(COLLECTIONS['events'], event_id)

        if await self.is_registered(event_id, uid):
            raise RecordValidationError(
                {"registration": "You have already registered for this event"},
                COLLECTIONS['event_registrations'],
            )

        errors = missing_required_fields(event, responses)
        if errors:
            raise RecordValidationError(errors, COLLECTIONS['event_registrations'])

        record = await self.sync.add(COLLECTIONS['event_registrations'], {
            "eventId": event_id,
            "userId": uid,
            "userEmail": email,
            "userName": user_name or email,
            "responses": responses,
            "registeredAt": datetime.now(timezone.utc).isoformat(),
        })
        logger.info(f"{uid} registered for event {event_id}")
        return record
