"""Calendar-day utilities for streak tracking.

Timestamps are compared at day granularity: both sides are converted to the
streak timezone and truncated to their local date.
"""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite hands them back without tzinfo)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


@lru_cache
def get_zone(name: str) -> tzinfo:
    """Resolve an IANA zone name, with 'UTC' short-circuited."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def activity_day(ts: datetime, tz: tzinfo = timezone.utc) -> date:
    """The calendar day ``ts`` falls on in ``tz``."""
    return ensure_aware(ts).astimezone(tz).date()


def days_between(earlier: datetime, later: datetime, tz: tzinfo = timezone.utc) -> int:
    """Whole calendar days from ``earlier`` to ``later``. Negative if ``later`` is before."""
    return (activity_day(later, tz) - activity_day(earlier, tz)).days
