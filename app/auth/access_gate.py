"""
Access gate for protected destinations.

The gate is a pure decision over (session state, destination). It never
raises for authorization problems: every result is one of the outcome types
below, and the presentation layer decides how to render it (the HTTP layer
turns everything except Admitted into a silent redirect).

Evaluation order:
    1. Unresolved       auth state (or the first profile snapshot) not known yet
    2. Unauthenticated  no session -> area sign-in page, remembering the target
    3. Role mismatch    admin area, profile role != admin -> admin sign-in
    4. Pending          verification-required page, status pending -> pending page
    5. Declined         verification-required page, status declined -> decline page
    6. Admitted
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..models.user import UserRole, VerificationStatus


class Area(str, Enum):
    RESIDENT = "resident"
    ADMIN = "admin"


@dataclass(frozen=True)
class Destination:
    path: str
    area: Area = Area.RESIDENT
    requires_verified: bool = False


RESIDENT_SIGN_IN = "/login"
ADMIN_SIGN_IN = "/admin/login"
PENDING_PAGE = "/verification/pending"
DECLINED_PAGE = "/verification/declined"

SIGN_IN_PATHS = {
    Area.RESIDENT: RESIDENT_SIGN_IN,
    Area.ADMIN: ADMIN_SIGN_IN,
}


def _resident(path: str, requires_verified: bool = False) -> Destination:
    return Destination(path, Area.RESIDENT, requires_verified)


def _admin(path: str) -> Destination:
    return Destination(path, Area.ADMIN)


DESTINATIONS: Dict[str, Destination] = {d.path: d for d in (
    _resident("/dashboard", requires_verified=True),
    _resident("/announcements"),
    _resident("/emergency-alerts", requires_verified=True),
    _resident("/officials"),
    _resident(PENDING_PAGE),
    _resident(DECLINED_PAGE),
    _resident("/profile"),
    _resident("/feedback", requires_verified=True),
    _resident("/vote", requires_verified=True),
    _resident("/events", requires_verified=True),
    _admin("/admin/dashboard"),
    _admin("/admin/announcements"),
    _admin("/admin/emergency-alerts"),
    _admin("/admin/officials"),
    _admin("/admin/events"),
    _admin("/admin/voting"),
    _admin("/admin/feedback"),
    _admin("/admin/residents"),
    _admin("/admin/accounts"),
    _admin("/admin/analytics"),
)}


def destination_for(path: str) -> Destination:
    try:
        return DESTINATIONS[path]
    except KeyError:
        raise KeyError(f"{path} is not a protected destination") from None


# ──────────────────────────────────────────────────────────────────────────────
# Outcomes
# ──────────────────────────────────────────────────────────────────────────────

class ForbiddenReason(str, Enum):
    ROLE_MISMATCH = "role_mismatch"
    PENDING = "pending"
    DECLINED = "declined"


@dataclass(frozen=True)
class Unresolved:
    pass


@dataclass(frozen=True)
class Unauthenticated:
    sign_in_path: str
    return_to: str


@dataclass(frozen=True)
class Forbidden:
    reason: ForbiddenReason
    redirect_to: str
    decline_reason: Optional[str] = None


@dataclass(frozen=True)
class Admitted:
    destination: Destination


GateOutcome = Union[Unresolved, Unauthenticated, Forbidden, Admitted]


# ──────────────────────────────────────────────────────────────────────────────
# Decision
# ──────────────────────────────────────────────────────────────────────────────

def _field(profile: Any, name: str) -> Any:
    if profile is None:
        return None
    if isinstance(profile, dict):
        return profile.get(name)
    return getattr(profile, name, None)


def evaluate(session, destination: Destination) -> GateOutcome:
    """
    Decide what happens to a navigation into ``destination``.

    ``session`` needs ``resolved``, ``uid``, ``profile_loaded`` and
    ``profile`` attributes (see app.auth.session.SessionState).
    """
    if not session.resolved:
        return Unresolved()

    if session.uid is None:
        return Unauthenticated(SIGN_IN_PATHS[destination.area], destination.path)

    if not session.profile_loaded:
        return Unresolved()

    profile = session.profile

    if destination.area == Area.ADMIN:
        if _field(profile, "role") != UserRole.ADMIN.value:
            return Forbidden(ForbiddenReason.ROLE_MISMATCH, ADMIN_SIGN_IN)
        return Admitted(destination)

    if destination.requires_verified:
        status = _field(profile, "status")
        if status == VerificationStatus.DECLINED.value:
            return Forbidden(ForbiddenReason.DECLINED, DECLINED_PAGE, _field(profile, "declineReason") or "")
        if status != VerificationStatus.VERIFIED.value:
            return Forbidden(ForbiddenReason.PENDING, PENDING_PAGE)

    return Admitted(destination)
