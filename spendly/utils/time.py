from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Optional

__all__ = ["utc_now", "utc_iso", "utc_day_start", "as_utc", "iso_day"]


def utc_now() -> datetime:
    """Timezone-aware current UTC time (replaces datetime.utcnow)."""
    return datetime.now(timezone.utc)


def utc_iso(ts: Optional[datetime] = None) -> str:
    """Return RFC3339/ISO8601 string with a trailing Z for UTC."""
    d = ts or utc_now()
    # datetime.isoformat() returns +00:00 for UTC; normalize to Z
    return d.isoformat().replace("+00:00", "Z")


def utc_day_start(ts: Optional[datetime] = None) -> datetime:
    """Midnight (UTC) of the day containing ``ts``."""
    d = as_utc(ts or utc_now())
    return d.replace(hour=0, minute=0, second=0, microsecond=0)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo); convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_day(value: datetime | date) -> str:
    return value.strftime("%Y-%m-%d")
