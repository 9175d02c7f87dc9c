from typing import List, Optional
import logging

from ..core.exceptions import NotFoundError, RecordValidationError
from ..database.collections import COLLECTIONS
from ..models.records import Record
from ..models.user import VerificationResult, VerificationStatus
from ..utils.validation import collect_errors, validate_phone_number, validate_required
from .email_service import email_service

logger = logging.getLogger(__name__)


class VerificationService:
    """
    Admin approve/decline of resident registrations.

    The status change is the transition; the notification email that follows
    is best effort. A failed email gives a degraded success
    (``email_sent=False``), never a failed approval.
    """

    def __init__(self, sync_manager, notifier=None):
        self.sync = sync_manager
        self.notifier = notifier or email_service

    async def list_pending(self) -> List[Record]:
        return await self.sync.query(COLLECTIONS['users'], "status", VerificationStatus.PENDING.value)

    async def _get_profile(self, uid: str) -> Record:
        profile = await self.sync.get(COLLECTIONS['users'], uid)
        if profile is None:
            raise NotFoundError(COLLECTIONS['users'], uid)
        return profile

    async def approve(self, uid: str, approved_by: Optional[str] = None) -> VerificationResult:
        profile = await self._get_profile(uid)

        await self.sync.update(
            COLLECTIONS['users'],
            uid,
            {"status": VerificationStatus.VERIFIED.value, "declineReason": ""},
            server_timestamps=("verifiedAt",),
        )
        logger.info(f"Resident {uid} approved by {approved_by or 'admin'}")

        email_sent = await self._notify(
            self.notifier.send_approval_notification(getattr(profile, "email", None), getattr(profile, "fullName", None) or "Resident"),
            uid,
        )
        message = "Resident approved successfully." if email_sent \
            else "Resident approved successfully. (Email notification failed)"
        return VerificationResult(uid=uid, status=VerificationStatus.VERIFIED, email_sent=email_sent, message=message)

    async def decline(self, uid: str, reason: str, declined_by: Optional[str] = None) -> VerificationResult:
        if not reason or not reason.strip():
            raise RecordValidationError({"reason": "Please provide a reason for declining"}, COLLECTIONS['users'])
        reason = reason.strip()
        profile = await self._get_profile(uid)

        await self.sync.update(
            COLLECTIONS['users'],
            uid,
            {"status": VerificationStatus.DECLINED.value, "declineReason": reason},
            server_timestamps=("declinedAt",),
        )
        logger.info(f"Resident {uid} declined by {declined_by or 'admin'}: {reason}")

        email_sent = await self._notify(
            self.notifier.send_decline_notification(getattr(profile, "email", None), getattr(profile, "fullName", None) or "Resident", reason),
            uid,
        )
        message = "Resident declined." if email_sent else "Resident declined. (Email notification failed)"
        return VerificationResult(uid=uid, status=VerificationStatus.DECLINED, email_sent=email_sent, message=message)

    async def resubmit(self, uid: str, purok: str, house_number: str, contact_number: str, proof_url: str) -> dict:
        """Declined resident sends updated details; the profile goes back to pending."""
        errors = collect_errors({
            "purok": validate_required(purok, "Purok"),
            "houseNumber": validate_required(house_number, "House number"),
            "contactNumber": validate_phone_number(contact_number),
            "proofFile": None if proof_url else "Please upload an updated proof of residency.",
        })
        if errors:
            raise RecordValidationError(errors, COLLECTIONS['users'])

        profile = await self._get_profile(uid)
        if getattr(profile, "status", None) != VerificationStatus.DECLINED.value:
            raise RecordValidationError({"status": "Only declined registrations can be resubmitted."}, COLLECTIONS['users'])

        changes = await self.sync.update(
            COLLECTIONS['users'],
            uid,
            {
                "purok": purok,
                "houseNumber": house_number,
                "address": f"{purok} {house_number}".strip(),
                "contactNumber": contact_number,
                "proofUrl": proof_url,
                "status": VerificationStatus.PENDING.value,
                "declineReason": "",
            },
            server_timestamps=("resubmittedAt",),
        )
        logger.info(f"Resident {uid} resubmitted verification")
        return changes

    async def _notify(self, send, uid: str) -> bool:
        try:
            sent = await send
        except Exception as e:
            logger.error(f"Email sending failed for {uid}, status change kept: {str(e)}")
            return False
        if not sent:
            logger.warning(f"Email notification for {uid} was not delivered")
        return bool(sent)
