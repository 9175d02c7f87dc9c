from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta, timezone
import logging

from ..core.config import settings
from ..database.collections import COLLECTIONS
from ..models.timestamps import as_datetime

logger = logging.getLogger(__name__)

SECTIONS = (
    "announcements",
    "emergency_alerts",
    "residents",
    "officials",
    "events",
    "voting",
    "feedback",
    "admins",
)

SECTION_TITLES = {
    "announcements": "Announcements",
    "emergency_alerts": "Emergency Alerts",
    "residents": "Resident Verification",
    "officials": "Officials",
    "events": "Events & Programs",
    "voting": "Voting & Surveys",
    "feedback": "Feedback & Concerns",
    "admins": "Admin Accounts",
}


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _local_tz() -> timezone:
    return timezone(timedelta(hours=settings.TZ_OFFSET))


def format_date(raw: Any) -> str:
    value = _aware(as_datetime(raw))
    return value.astimezone(_local_tz()).strftime("%Y-%m-%d") if value else "N/A"


def format_datetime(raw: Any) -> str:
    value = _aware(as_datetime(raw))
    return value.astimezone(_local_tz()).strftime("%Y-%m-%d %H:%M") if value else "N/A"


def filter_by_date_range(
    items: List[Any],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    date_field: str = "createdAt",
) -> List[Any]:
    """
    Keep items whose ``date_field`` falls inside [start, end]. Items without a
    readable date are dropped once any bound is given.
    """
    if start is None and end is None:
        return list(items)
    start, end = _aware(start), _aware(end)
    kept = []
    for item in items:
        value = _aware(as_datetime(_field(item, date_field)))
        if value is None:
            continue
        if start and value < start:
            continue
        if end and value > end:
            continue
        kept.append(item)
    return kept


def _on_or_after(item: Any, date_field: str, cutoff: datetime) -> bool:
    value = _aware(as_datetime(_field(item, date_field)))
    return value is not None and value >= cutoff


def _window_status(start_raw: Any, end_raw: Any, now: datetime) -> str:
    start = _aware(as_datetime(start_raw))
    end = _aware(as_datetime(end_raw))
    if end and now > end:
        return "closed"
    if start and now >= start:
        return "active"
    return "upcoming"


class AnalyticsService:
    """
    Per-section KPIs and table rows for the admin analytics page. Each section
    returns ``{"kpis": {...}, "data": [...]}``; rows are flat and display-ready
    so the same payload feeds the PDF export.
    """

    def __init__(self, sync_manager):
        self.sync = sync_manager

    async def section(self, name: str, start: Optional[datetime] = None,
                      end: Optional[datetime] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        handler = getattr(self, f"_{name}", None)
        if name not in SECTIONS or handler is None:
            raise KeyError(name)
        return await handler(start, end, _aware(now) or datetime.now(timezone.utc))

    async def _announcements(self, start, end, now) -> Dict[str, Any]:
        items = await self.sync.fetch_all(COLLECTIONS['announcements'])
        items = filter_by_date_range(items, start, end, "createdAt")
        month_ago = now - timedelta(days=30)
        this_month = [a for a in items if _on_or_after(a, "createdAt", month_ago)]
        archived = [a for a in items if _field(a, "status") == "archived"]
        return {
            "kpis": {
                "total": len(items),
                "thisMonth": len(this_month),
                "active": len(items) - len(archived),
                "archived": len(archived),
            },
            "data": [{
                "id": a.id,
                "title": _field(a, "title", "Untitled"),
                "createdBy": _field(a, "createdBy", "Unknown"),
                "datePosted": format_date(_field(a, "createdAt")),
                "when": _field(a, "whenDate", "N/A"),
                "views": _field(a, "views", 0),
                "status": _field(a, "status", "active"),
            } for a in items],
        }

    async def _emergency_alerts(self, start, end, now) -> Dict[str, Any]:
        items = await self.sync.fetch_all(COLLECTIONS['emergency_alerts'])
        items = filter_by_date_range(items, start, end, "createdAt")

        def severity(level):
            return len([a for a in items if _field(a, "severity") == level])

        return {
            "kpis": {
                "total": len(items),
                "active": len([a for a in items if _field(a, "status") == "Active"]),
                "high": severity("High"),
                "medium": severity("Medium"),
                "low": severity("Low"),
            },
            "data": [{
                "id": a.id,
                "title": _field(a, "title", "Untitled"),
                "severity": _field(a, "severity", "Medium"),
                "datePosted": format_date(_field(a, "createdAt")),
                "effectiveDate": _field(a, "effectiveDate", "N/A"),
                "status": _field(a, "status", "Active"),
                "createdBy": _field(a, "createdBy", "Admin"),
                "audience": _field(a, "audience", "public"),
            } for a in items],
        }

    async def _residents(self, start, end, now) -> Dict[str, Any]:
        users = await self.sync.query(COLLECTIONS['users'], "role", "resident")
        users = filter_by_date_range(users, start, end, "createdAt")
        week_ago = now - timedelta(days=7)

        def status(value):
            return [u for u in users if _field(u, "status") == value]

        verified = status("verified")
        return {
            "kpis": {
                "total": len(users),
                "verified": len(verified),
                "pending": len(status("pending")),
                "rejected": len(status("declined")),
                "newLast7Days": len([
                    u for u in verified
                    if _on_or_after(u, "verifiedAt", week_ago)
                ]),
            },
            "data": [{
                "id": u.id,
                "fullName": _field(u, "fullName", "N/A"),
                "email": _field(u, "email", "N/A"),
                "contactNumber": _field(u, "contactNumber", "N/A"),
                "address": _field(u, "address", "N/A"),
                "status": _field(u, "status", "pending"),
                "dateRegistered": format_date(_field(u, "createdAt")),
                "dateVerified": format_date(_field(u, "verifiedAt")),
            } for u in users],
        }

    async def _officials(self, start, end, now) -> Dict[str, Any]:
        items = await self.sync.fetch_all(COLLECTIONS['officials'])
        items = filter_by_date_range(items, start, end, "createdAt")
        positions = {_field(o, "position") for o in items if _field(o, "position")}
        return {
            "kpis": {"total": len(items), "positions": len(positions)},
            "data": [{
                "id": o.id,
                "name": _field(o, "name", "N/A"),
                "position": _field(o, "position", "N/A"),
                "contact": _field(o, "contact", "N/A"),
                "email": _field(o, "email", "N/A"),
            } for o in items],
        }

    async def _events(self, start, end, now) -> Dict[str, Any]:
        events = await self.sync.fetch_all(COLLECTIONS['events'])
        events = filter_by_date_range(events, start, end, "eventDate")
        registrations = await self.sync.fetch_all(COLLECTIONS['event_registrations'])

        counts: Dict[str, int] = {}
        for registration in registrations:
            event_id = _field(registration, "eventId")
            if event_id:
                counts[event_id] = counts.get(event_id, 0) + 1

        month_ago = now - timedelta(days=30)
        recent = [
            r for r in registrations
            if _on_or_after(r, "registeredAt", month_ago) or _on_or_after(r, "createdAt", month_ago)
        ]
        top = max(events, key=lambda e: counts.get(e.id, 0), default=None)
        return {
            "kpis": {
                "total": len(events),
                "registrationsThisMonth": len(recent),
                "topEventTitle": _field(top, "title", "N/A") if top else "N/A",
                "topEventCount": counts.get(top.id, 0) if top else 0,
            },
            "data": [{
                "id": e.id,
                "title": _field(e, "title", "Untitled"),
                "date": _field(e, "eventDate", "N/A"),
                "time": _field(e, "eventTime", "N/A"),
                "location": _field(e, "location", "TBA"),
                "registeredCount": counts.get(e.id, 0),
                "createdBy": _field(e, "createdBy", "Admin"),
            } for e in events],
        }

    async def _voting(self, start, end, now) -> Dict[str, Any]:
        events = await self.sync.fetch_all(COLLECTIONS['voting'])
        events = filter_by_date_range(events, start, end, "startDate")
        votes = await self.sync.fetch_all(COLLECTIONS['user_votes'])

        voters: Dict[str, set] = {}
        for vote in votes:
            voters.setdefault(_field(vote, "eventId"), set()).add(_field(vote, "userId"))

        rows = []
        for e in events:
            options = _field(e, "options", [])
            rows.append({
                "id": e.id,
                "title": _field(e, "title", "Untitled"),
                "type": _field(e, "type", "candidate"),
                "startDate": format_date(_field(e, "startDate")),
                "endDate": format_date(_field(e, "endDate")),
                "locked": bool(_field(e, "locked", False)),
                "totalVotes": sum(_field(o, "votes", 0) for o in options),
                "participants": len(voters.get(e.id, ())),
                "status": _window_status(_field(e, "startDate"), _field(e, "endDate"), now),
            })

        participation = sum(row["participants"] for row in rows)
        return {
            "kpis": {
                "total": len(rows),
                "active": len([r for r in rows if r["status"] == "active"]),
                "closed": len([r for r in rows if r["status"] == "closed"]),
                "avgParticipation": round(participation / len(rows)) if rows else 0,
            },
            "data": rows,
        }

    async def _feedback(self, start, end, now) -> Dict[str, Any]:
        items = await self.sync.fetch_all(COLLECTIONS['feedback'])
        items = filter_by_date_range(items, start, end, "createdAt")

        response_hours = []
        for f in items:
            replies = _field(f, "replies", [])
            if not replies:
                continue
            submitted = _aware(as_datetime(_field(f, "createdAt")))
            replied = _aware(as_datetime(_field(replies[0], "createdAt")))
            if submitted and replied:
                response_hours.append((replied - submitted).total_seconds() / 3600)

        avg_response = round(sum(response_hours) / len(response_hours)) if response_hours else 0
        return {
            "kpis": {
                "total": len(items),
                "pending": len([f for f in items if _field(f, "status", "Pending") == "Pending"]),
                "inReview": len([f for f in items if _field(f, "status") == "In Review"]),
                "resolved": len([f for f in items if _field(f, "status") == "Resolved"]),
                "avgResponseTime": f"{avg_response}h",
            },
            "data": [{
                "id": f.id,
                "category": _field(f, "category", "General"),
                "userName": _field(f, "fullName", "Anonymous"),
                "messagePreview": (_field(f, "message", "")[:50] + "...") if _field(f, "message") else "No message",
                "status": _field(f, "status", "Pending"),
                "submittedAt": format_datetime(_field(f, "createdAt")),
                "responseCount": len(_field(f, "replies", [])),
            } for f in items],
        }

    async def _admins(self, start, end, now) -> Dict[str, Any]:
        admins = await self.sync.query(COLLECTIONS['users'], "role", "admin")
        admins = filter_by_date_range(admins, start, end, "createdAt")
        return {
            "kpis": {
                "total": len(admins),
                "active": len([a for a in admins if _field(a, "status") in ("verified", "active")]),
                "disabled": len([a for a in admins if _field(a, "status") in ("disabled", "suspended")]),
            },
            "data": [{
                "id": a.id,
                "name": _field(a, "fullName", "N/A"),
                "email": _field(a, "email", "N/A"),
                "role": _field(a, "role", "admin"),
                "dateCreated": format_date(_field(a, "createdAt")),
                "status": _field(a, "status", "active"),
            } for a in admins],
        }
