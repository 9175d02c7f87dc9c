"""
Per-collection record shapes.

Every collection gets its own model with named, mostly optional fields. The
sync layer validates writes against these models and parses snapshot documents
into them. Unknown keys are kept (``extra="allow"``) so older documents survive
a round trip untouched.
"""

from typing import Any, Dict, List, Optional, Tuple, Type
from enum import Enum
import logging

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError, field_validator

from .timestamps import Timestamp, resolve_timestamp
from .user import UserRole, VerificationStatus
from ..core.exceptions import RecordValidationError, UnknownCollectionError
from ..database.collections import COLLECTIONS

logger = logging.getLogger(__name__)

# Fields the server owns; never accepted from callers
SERVER_MANAGED_FIELDS = ("id", "createdAt", "updatedAt")

TIMESTAMP_FIELDS = ("createdAt", "updatedAt", "verifiedAt", "declinedAt", "resubmittedAt", "archivedAt")


class Record(BaseModel):
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: Optional[str] = None
    createdAt: Optional[Timestamp] = None
    updatedAt: Optional[Timestamp] = None


# ──────────────────────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────────────────────

class AlertSeverity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class AlertStatus(str, Enum):
    ACTIVE = "Active"
    RESOLVED = "Resolved"
    EXPIRED = "Expired"


class VotingType(str, Enum):
    CANDIDATE = "candidate"
    POLL = "poll"


class ResultVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class FeedbackStatus(str, Enum):
    PENDING = "Pending"
    IN_REVIEW = "In Review"
    RESOLVED = "Resolved"


class RegistrationFieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    EMAIL = "email"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"


# ──────────────────────────────────────────────────────────────────────────────
# Nested values
# ──────────────────────────────────────────────────────────────────────────────

class RegistrationField(BaseModel):
    id: Optional[str] = None
    label: str = Field(..., min_length=1)
    type: RegistrationFieldType = RegistrationFieldType.TEXT
    required: bool = False
    options: List[str] = []


class VotingOption(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    votes: int = Field(default=0, ge=0)
    image: Optional[str] = None


class FeedbackReply(BaseModel):
    id: str
    author: str  # "Admin" or "Resident"
    message: str = Field(..., min_length=1)
    createdAt: str


def _not_blank(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError("must not be blank")
    return value


# ──────────────────────────────────────────────────────────────────────────────
# Collection records
# ──────────────────────────────────────────────────────────────────────────────

class UserProfile(Record):
    fullName: Optional[str] = None
    email: Optional[EmailStr] = None
    birthday: Optional[str] = None
    purok: Optional[str] = None
    houseNumber: Optional[str] = None
    address: Optional[str] = None
    contactNumber: Optional[str] = None
    proofUrl: Optional[str] = None
    role: UserRole = UserRole.RESIDENT
    status: VerificationStatus = VerificationStatus.PENDING
    declineReason: Optional[str] = None
    verifiedAt: Optional[Timestamp] = None
    declinedAt: Optional[Timestamp] = None
    resubmittedAt: Optional[Timestamp] = None


class Announcement(Record):
    title: str
    description: str
    whenDate: Optional[str] = None
    image: Optional[str] = None
    datePosted: Optional[str] = None
    createdBy: Optional[str] = None
    status: Optional[str] = None
    views: int = 0

    @field_validator("title", "description")
    @classmethod
    def check_text(cls, v):
        return _not_blank(v)


class EmergencyAlert(Record):
    title: str
    description: str
    category: str = "General Alert"
    severity: AlertSeverity = AlertSeverity.MEDIUM
    status: AlertStatus = AlertStatus.ACTIVE
    postedDate: Optional[str] = None
    postedTime: Optional[str] = None
    effectiveDate: Optional[str] = None
    datePosted: Optional[str] = None
    audience: str = "public"
    createdBy: Optional[str] = None

    @field_validator("title", "description")
    @classmethod
    def check_text(cls, v):
        return _not_blank(v)


class Official(Record):
    name: str
    position: str
    contact: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name", "position")
    @classmethod
    def check_text(cls, v):
        return _not_blank(v)


class Event(Record):
    title: str
    eventDate: str
    description: Optional[str] = None
    eventTime: Optional[str] = None
    location: Optional[str] = None
    registrationFields: List[RegistrationField] = []
    createdBy: Optional[str] = None

    @field_validator("title", "eventDate")
    @classmethod
    def check_text(cls, v):
        return _not_blank(v)


class EventRegistration(Record):
    eventId: str
    userId: str
    userEmail: Optional[str] = None
    responses: Dict[str, Any] = {}
    registeredAt: Optional[str] = None


class VotingEvent(Record):
    title: str
    description: Optional[str] = None
    type: VotingType = VotingType.CANDIDATE
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    resultVisibility: ResultVisibility = ResultVisibility.PUBLIC
    options: List[VotingOption] = []
    locked: bool = False
    createdBy: Optional[str] = None

    @field_validator("title")
    @classmethod
    def check_text(cls, v):
        return _not_blank(v)


class UserVote(Record):
    eventId: str
    optionId: str
    userId: str
    userEmail: Optional[str] = None
    votedAt: Optional[str] = None


class Feedback(Record):
    message: str
    userId: str
    category: str = "Complaint"
    fullName: Optional[str] = None
    address: Optional[str] = None
    attachment: Optional[str] = None
    status: FeedbackStatus = FeedbackStatus.PENDING
    adminReply: Optional[str] = None
    replies: List[FeedbackReply] = []

    @field_validator("message")
    @classmethod
    def check_text(cls, v):
        return _not_blank(v)


RECORD_MODELS: Dict[str, Type[Record]] = {
    COLLECTIONS['users']: UserProfile,
    COLLECTIONS['announcements']: Announcement,
    COLLECTIONS['emergency_alerts']: EmergencyAlert,
    COLLECTIONS['officials']: Official,
    COLLECTIONS['events']: Event,
    COLLECTIONS['event_registrations']: EventRegistration,
    COLLECTIONS['voting']: VotingEvent,
    COLLECTIONS['user_votes']: UserVote,
    COLLECTIONS['feedback']: Feedback,
}


def model_for(collection: str) -> Type[Record]:
    model = RECORD_MODELS.get(collection)
    if model is None:
        raise UnknownCollectionError(collection)
    return model


# ──────────────────────────────────────────────────────────────────────────────
# Write boundary
# ──────────────────────────────────────────────────────────────────────────────

def errors_by_field(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        loc = error.get("loc") or ("__root__",)
        field = str(loc[0])
        if error.get("type") == "missing":
            errors.setdefault(field, f"{field} is required.")
        else:
            errors.setdefault(field, error.get("msg", "Invalid value."))
    return errors


def _strip_server_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in SERVER_MANAGED_FIELDS}


def validate_new(collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a full field set for ``add``. Returns the JSON-compatible field
    map to store; raises RecordValidationError keyed by field name.
    """
    model = model_for(collection)
    try:
        record = model.model_validate(_strip_server_fields(fields))
    except ValidationError as e:
        raise RecordValidationError(errors_by_field(e), collection) from e
    return record.model_dump(mode="json", exclude=set(SERVER_MANAGED_FIELDS), exclude_unset=False, exclude_none=True)


def validate_partial(collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate only the supplied fields for ``update``."""
    model = model_for(collection)
    errors: Dict[str, str] = {}
    clean: Dict[str, Any] = {}
    for name, value in _strip_server_fields(fields).items():
        field = model.model_fields.get(name)
        if field is None:
            clean[name] = value
            continue
        if field.is_required() and value is None:
            errors[name] = f"{name} is required."
            continue
        adapter = TypeAdapter(field.annotation)
        try:
            parsed = adapter.validate_python(value)
            if name in _text_fields(model) and isinstance(parsed, str):
                _not_blank(parsed)
        except (ValidationError, ValueError) as e:
            if isinstance(e, ValidationError):
                errors[name] = e.errors()[0].get("msg", "Invalid value.")
            else:
                errors[name] = str(e)
            continue
        clean[name] = adapter.dump_python(parsed, mode="json")
    if errors:
        raise RecordValidationError(errors, collection)
    return clean


def _text_fields(model: Type[Record]) -> Tuple[str, ...]:
    return tuple(
        name for name, field in model.model_fields.items()
        if field.is_required() and field.annotation is str
    )


# ──────────────────────────────────────────────────────────────────────────────
# Read side
# ──────────────────────────────────────────────────────────────────────────────

def to_record(collection: str, document: Dict[str, Any]) -> Record:
    """
    Parse a snapshot document into its collection model. Documents that no
    longer fit the model (legacy shapes) fall back to the bare Record so a
    snapshot is never missing a document.
    """
    data = dict(document)
    for field in TIMESTAMP_FIELDS:
        if field in data:
            data[field] = resolve_timestamp(data[field])
    model = RECORD_MODELS.get(collection, Record)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Document {collection}/{data.get('id')} does not match {model.__name__}: {e.error_count()} error(s)")
        return Record.model_validate(data)
