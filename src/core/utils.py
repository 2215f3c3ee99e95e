"""Core utility functions."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Get current UTC datetime with timezone info. Always use this instead of datetime.now()."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware (UTC).

    SQLite stores datetimes without timezone info, so we need to make them
    aware before comparing with utcnow().

    Args:
        dt: A datetime that may or may not be timezone-aware.

    Returns:
        Timezone-aware datetime in UTC, or None if input was None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Assume naive datetimes are UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert an incoming timestamp to UTC. Naive values are taken as UTC."""
    if dt is None:
        return None
    return ensure_aware(dt).astimezone(timezone.utc)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp for JSON output."""
    aware = ensure_aware(dt)
    return aware.isoformat() if aware else None


def start_of_day(dt: Optional[datetime] = None) -> datetime:
    """Midnight UTC of the given (or current) day."""
    dt = ensure_aware(dt) or utcnow()
    return dt.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)


def new_id() -> str:
    """Generate a new primary key."""
    return str(uuid.uuid4())


__all__ = [
    "utcnow",
    "ensure_aware",
    "to_utc",
    "isoformat",
    "start_of_day",
    "days_ago",
    "new_id",
]
