from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, Dict
from enum import Enum

# ──────────────────────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────────────────────

class UserRole(str, Enum):
    ADMIN = "admin"
    RESIDENT = "resident"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    DECLINED = "declined"


# ──────────────────────────────────────────────────────────────────────────────
# Registration payloads: camelCase for the web client, legacy keys folded in
# ──────────────────────────────────────────────────────────────────────────────

class ResidentSignup(BaseModel):
    name: str = Field(..., description="Full name, letters and spaces only")
    email: EmailStr
    password: str
    confirmPassword: str
    birthday: str = Field(..., description="Birth date as YYYY-MM-DD")
    purok: str
    houseNumber: str
    contactNumber: str = Field(..., description="PH mobile number, 09XXXXXXXXX")
    proofUrl: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_keys(cls, v: Dict) -> Dict:
        if isinstance(v, dict):
            v = dict(v)
            v.setdefault("name", v.get("fullName"))
            v.setdefault("contactNumber", v.get("phoneNumber"))
            v.setdefault("confirmPassword", v.get("password"))
        return v

    @property
    def address(self) -> str:
        return f"{self.purok} {self.houseNumber}".strip()


class AdminSignup(BaseModel):
    fullName: str = Field(..., min_length=1)
    email: EmailStr
    password: str
    confirmPassword: str
    contactNumber: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_keys(cls, v: Dict) -> Dict:
        if isinstance(v, dict):
            v = dict(v)
            v.setdefault("fullName", v.get("name"))
            v.setdefault("confirmPassword", v.get("password"))
        return v


class DeclineRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Shown to the resident on the decline page")

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please provide a reason for declining")
        return v.strip()


class VerificationResult(BaseModel):
    """Outcome of approve/decline: the status change always lands first."""
    uid: str
    status: VerificationStatus
    email_sent: bool
    message: str
