from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from ..core.exceptions import NotFoundError, RecordValidationError
from ..database.collections import COLLECTIONS
from ..models.records import FeedbackStatus, Record

logger = logging.getLogger(__name__)

ADMIN_AUTHOR = "Admin"
RESIDENT_AUTHOR = "Resident"


class FeedbackService:
    def __init__(self, sync_manager):
        self.sync = sync_manager

    async def submit(self, uid: str, email: Optional[str], fields: Dict[str, Any], profile: Optional[Record] = None) -> Record:
        """Resident submission; name and address default to the profile's."""
        data = {
            "category": fields.get("category") or "Complaint",
            "fullName": fields.get("fullName") or getattr(profile, "fullName", None) or "Anonymous",
            "address": fields.get("address") or getattr(profile, "address", None) or "",
            "message": fields.get("message"),
            "attachment": fields.get("attachment"),
            "userId": uid,
            "userEmail": email,
            "status": FeedbackStatus.PENDING.value,
            "replies": [],
        }
        record = await self.sync.add(COLLECTIONS['feedback'], data)
        logger.info(f"Feedback {record.id} submitted by {uid}")
        return record

    async def for_user(self, uid: str) -> List[Record]:
        return await self.sync.query(COLLECTIONS['feedback'], "userId", uid)

    async def reply(self, feedback_id: str, message: str, author: str, author_id: Optional[str] = None) -> Dict[str, Any]:
        if not message or not message.strip():
            raise RecordValidationError({"message": "Please enter a reply"}, COLLECTIONS['feedback'])

        feedback = await self.sync.get(COLLECTIONS['feedback'], feedback_id)
        if feedback is None:
            raise NotFoundError(COLLECTIONS['feedback'], feedback_id)

        # residents may only reply on their own thread
        if author == RESIDENT_AUTHOR and getattr(feedback, "userId", None) != author_id:
            raise NotFoundError(COLLECTIONS['feedback'], feedback_id)

        replies = [reply if isinstance(reply, dict) else reply.model_dump() for reply in getattr(feedback, "replies", [])]
        replies.append({
            "id": uuid4().hex,
            "author": author,
            "message": message,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        })

        changes: Dict[str, Any] = {"replies": replies}
        if author == ADMIN_AUTHOR:
            changes["adminReply"] = message

        applied = await self.sync.update(COLLECTIONS['feedback'], feedback_id, changes)
        logger.info(f"{author} replied on feedback {feedback_id}")
        return applied

    async def set_status(self, feedback_id: str, status: str) -> Dict[str, Any]:
        return await self.sync.update(COLLECTIONS['feedback'], feedback_id, {"status": status})
