from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class PendingTimestamp(BaseModel):
    """Client-side guess returned by add/update before the server value lands."""
    kind: Literal["pending"] = "pending"
    approximate: datetime

    @property
    def is_durable(self) -> bool:
        return False

    @classmethod
    def now(cls) -> "PendingTimestamp":
        return cls(approximate=datetime.now(timezone.utc))


class ResolvedTimestamp(BaseModel):
    """Server-assigned time, as read back from a snapshot."""
    kind: Literal["resolved"] = "resolved"
    value: datetime

    @property
    def is_durable(self) -> bool:
        return True


Timestamp = Annotated[Union[PendingTimestamp, ResolvedTimestamp], Field(discriminator="kind")]


def resolve_timestamp(raw: Any) -> Optional[ResolvedTimestamp]:
    """
    Turn a stored timestamp into a ResolvedTimestamp.

    Firestore hands back datetimes; older documents written by the web client
    carry ISO strings instead. Anything else is treated as absent.
    """
    if raw is None:
        return None
    if isinstance(raw, (PendingTimestamp, ResolvedTimestamp)):
        return raw if isinstance(raw, ResolvedTimestamp) else None
    if isinstance(raw, datetime):
        return ResolvedTimestamp(value=raw)
    if isinstance(raw, str):
        try:
            return ResolvedTimestamp(value=datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def as_datetime(raw: Any) -> Optional[datetime]:
    """Best-effort datetime for any timestamp shape (used for filtering/sorting)."""
    if isinstance(raw, ResolvedTimestamp):
        return raw.value
    if isinstance(raw, PendingTimestamp):
        return raw.approximate
    resolved = resolve_timestamp(raw)
    return resolved.value if resolved else None
