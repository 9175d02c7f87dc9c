from typing import Any, Dict, Optional
import logging

from pydantic import ValidationError

from ..auth.access_gate import DECLINED_PAGE, PENDING_PAGE
from ..auth.firebase_auth import firebase_auth
from ..core.exceptions import RecordValidationError
from ..database.collections import COLLECTIONS
from ..models.records import Record, errors_by_field
from ..models.user import AdminSignup, ResidentSignup, UserRole, VerificationStatus
from ..utils.validation import (
    collect_errors,
    validate_confirm_password,
    validate_date,
    validate_email,
    validate_name,
    validate_password,
    validate_phone_number,
    validate_required,
)

logger = logging.getLogger(__name__)


def resident_signup_errors(form: Dict[str, Any]) -> Dict[str, str]:
    return collect_errors({
        "name": validate_name(form.get("name") or form.get("fullName")),
        "email": validate_email(form.get("email")),
        "password": validate_password(form.get("password")),
        "confirmPassword": validate_confirm_password(form.get("password"), form.get("confirmPassword")),
        "birthday": validate_date(form.get("birthday"), allow_past=True),
        "purok": validate_required(form.get("purok"), "Purok"),
        "houseNumber": validate_required(form.get("houseNumber"), "House number"),
        "contactNumber": validate_phone_number(form.get("contactNumber") or form.get("phoneNumber")),
    })


def admin_signup_errors(form: Dict[str, Any]) -> Dict[str, str]:
    return collect_errors({
        "fullName": validate_name(form.get("fullName") or form.get("name")),
        "email": validate_email(form.get("email")),
        "password": validate_password(form.get("password")),
        "confirmPassword": validate_confirm_password(form.get("password"), form.get("confirmPassword")),
        "contactNumber": validate_phone_number(form.get("contactNumber")) if form.get("contactNumber") else None,
    })


def _parse(model, form: Dict[str, Any]):
    try:
        return model.model_validate(form)
    except ValidationError as e:
        raise RecordValidationError(errors_by_field(e), COLLECTIONS['users']) from e


class AccountService:
    """Creates the identity in Firebase Auth and the matching profile document."""

    def __init__(self, sync_manager, identity=None):
        self.sync = sync_manager
        self.identity = identity or firebase_auth

    async def register_resident(self, form: Dict[str, Any]) -> Record:
        errors = resident_signup_errors(form)
        if errors:
            raise RecordValidationError(errors, COLLECTIONS['users'])
        payload = _parse(ResidentSignup, form)

        user = await self.identity.create_user(payload.email, payload.password, payload.name)
        profile = await self.sync.add(
            COLLECTIONS['users'],
            {
                "fullName": payload.name,
                "email": payload.email,
                "birthday": payload.birthday,
                "purok": payload.purok,
                "houseNumber": payload.houseNumber,
                "address": payload.address,
                "contactNumber": payload.contactNumber,
                "proofUrl": payload.proofUrl,
                "role": UserRole.RESIDENT.value,
                "status": VerificationStatus.PENDING.value,
            },
            record_id=user["uid"],
        )
        logger.info(f"Resident registered: {user['uid']} ({payload.email}), pending verification")
        return profile

    async def register_admin(self, form: Dict[str, Any], created_by: Optional[str] = None) -> Record:
        errors = admin_signup_errors(form)
        if errors:
            raise RecordValidationError(errors, COLLECTIONS['users'])
        payload = _parse(AdminSignup, form)

        user = await self.identity.create_user(payload.email, payload.password, payload.fullName)
        profile = await self.sync.add(
            COLLECTIONS['users'],
            {
                "fullName": payload.fullName,
                "email": payload.email,
                "contactNumber": payload.contactNumber,
                "role": UserRole.ADMIN.value,
                "status": VerificationStatus.VERIFIED.value,
            },
            record_id=user["uid"],
        )
        logger.info(f"Admin account created: {user['uid']} ({payload.email}) by {created_by or 'self-signup'}")
        return profile

    async def list_admins(self):
        return await self.sync.query(COLLECTIONS['users'], "role", UserRole.ADMIN.value)

    async def sign_in(self, email: str, password: str, admin: bool = False, next_path: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Password sign-in plus the page the user lands on. Returns None for bad
        credentials, and for a non-admin signing in through the admin form.
        """
        token_data = await self.identity.sign_in_with_password(email, password)
        if not token_data:
            return None

        uid = token_data.get("localId")
        profile = await self.sync.get(COLLECTIONS['users'], uid)
        role = getattr(profile, "role", None)
        status = getattr(profile, "status", None) or VerificationStatus.PENDING.value

        if admin:
            if role != UserRole.ADMIN.value:
                logger.warning(f"Non-admin {uid} tried the admin sign-in")
                return None
            landing = next_path or "/admin/dashboard"
        elif status == VerificationStatus.VERIFIED.value:
            landing = next_path or "/dashboard"
        elif status == VerificationStatus.DECLINED.value:
            landing = DECLINED_PAGE
        else:
            landing = PENDING_PAGE

        return {
            "id_token": token_data.get("idToken"),
            "refresh_token": token_data.get("refreshToken"),
            "expires_in": token_data.get("expiresIn", "3600"),
            "token_type": "Bearer",
            "uid": uid,
            "email": email,
            "role": role,
            "status": status,
            "redirect_to": landing,
            "profile": profile.model_dump(mode="json") if profile else None,
        }

    async def delete_admin(self, uid: str, actor_id: Optional[str] = None, actor_email: Optional[str] = None) -> bool:
        """Archive the admin profile, then drop the identity. Admins cannot delete themselves."""
        if uid == actor_id:
            raise RecordValidationError({"uid": "You cannot delete your own account."}, COLLECTIONS['users'])

        profile = await self.sync.get(COLLECTIONS['users'], uid)
        if profile is None or getattr(profile, "role", None) != UserRole.ADMIN.value:
            return False

        removed = await self.sync.remove(COLLECTIONS['users'], uid, actor_id, actor_email)
        if removed:
            try:
                await self.identity.delete_user(uid)
            except Exception as e:
                logger.error(f"Profile {uid} archived but identity deletion failed: {str(e)}")
        logger.info(f"Admin {uid} removed by {actor_email or actor_id}")
        return removed
