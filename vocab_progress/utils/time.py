"""Timezone helpers shared by the scheduler and the gamification engine."""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""

    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@lru_cache(maxsize=32)
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_date(moment: datetime, tz_name: str) -> date:
    """Return the calendar date of ``moment`` in the given timezone."""

    return ensure_utc(moment).astimezone(get_zone(tz_name)).date()


def start_of_day(day: date, tz_name: str) -> datetime:
    """Return midnight of ``day`` in ``tz_name`` as an aware UTC datetime."""

    return datetime.combine(day, time.min, tzinfo=get_zone(tz_name)).astimezone(timezone.utc)
