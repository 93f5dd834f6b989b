"""
Timezone utilities for the scheduling engine.

Rules:
- Availability is authored in the mentor's schedule timezone
- All storage and all comparisons: UTC
- Viewer timezones are used for display only
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from .exceptions import ValidationException


def get_timezone(tz_str: str) -> pytz.BaseTzInfo:
    """Resolve an IANA timezone name, rejecting unknown names."""
    try:
        return pytz.timezone(tz_str)
    except pytz.UnknownTimeZoneError:
        raise ValidationException(
            f"Unknown timezone: {tz_str}",
            code="INVALID_TIMEZONE",
            details={"timezone": tz_str},
        )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are rejected."""
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValidationException(
            "Datetime must be timezone-aware", code="NAIVE_DATETIME", details={"value": str(dt)}
        )
    return dt.astimezone(timezone.utc)


def local_to_utc(local_date: date, local_time: time, timezone_str: str) -> Optional[datetime]:
    """
    Convert a local wall-clock date/time to UTC.

    Uses the timezone rules valid on local_date. Ambiguous times (fall back)
    resolve to the first occurrence. Returns None when the wall-clock time
    does not exist (spring-forward gap).
    """
    tz = get_timezone(timezone_str)
    naive_dt = datetime.combine(local_date, local_time)  # intentionally naive for localize()

    try:
        local_dt = tz.localize(naive_dt, is_dst=None)
    except pytz.exceptions.AmbiguousTimeError:
        local_dt = tz.localize(naive_dt, is_dst=True)
    except pytz.exceptions.NonExistentTimeError:
        return None

    return local_dt.astimezone(timezone.utc)


def utc_to_local(utc_dt: datetime, timezone_str: str) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)
    return utc_dt.astimezone(get_timezone(timezone_str))


def hours_until(target: datetime, now: datetime) -> float:
    """Signed hours from now until target."""
    return (ensure_utc(target) - ensure_utc(now)).total_seconds() / 3600


def day_of_week(local_date: date) -> int:
    """Day index with Sunday = 0 through Saturday = 6."""
    return (local_date.weekday() + 1) % 7
