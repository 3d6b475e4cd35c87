"""
Datetime utilities for consistent timezone handling across the application.

All interval arithmetic on stored timestamps happens in UTC. Booking times are
provider wall-clock "HH:MM" strings; they are localized in the configured
timezone and converted to UTC before any comparison with ``utc_now()``.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

import pytz

from utils.constants import (
    MINUTES_IN_DAY,
    REVIEW_DELETE_WINDOW_HOURS,
    REVIEW_EDIT_WINDOW_DAYS,
)


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    normalized = iso_string.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """Convert datetime to ISO format string (naive values are treated as UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


def parse_iso_date(value: Union[str, date]) -> date:
    """
    Parse an ISO calendar date ("YYYY-MM-DD").

    A full ISO timestamp is accepted too; only its date part is kept.

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid date string: {value}")
    if len(value) > 10:
        return parse_iso_datetime(value).date()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid date string: {value}") from e


def parse_hhmm(value: str) -> int:
    """
    Convert an "HH:MM" string to minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24h time
    """
    try:
        hours_str, minutes_str = value.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid time string: {value}") from e

    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time string: {value}")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    """Convert minutes since midnight back to "HH:MM"."""
    if not 0 <= minutes < MINUTES_IN_DAY:
        raise ValueError(f"Minutes out of range for a single day: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(target_date: date) -> int:
    """Return the weekday with Sunday=0 .. Saturday=6."""
    # date.weekday() is Monday=0
    return (target_date.weekday() + 1) % 7


def get_timezone(tz_name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Resolve a timezone name, falling back to UTC for unknown names."""
    if not tz_name:
        return pytz.UTC
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def booking_start_utc(
    scheduled_date: date, scheduled_time: str, tz_name: Optional[str] = None
) -> datetime:
    """
    Combine a booking's wall-clock date and time into an aware UTC datetime.

    Args:
        scheduled_date: Calendar date of the booking
        scheduled_time: "HH:MM" start in the provider's timezone
        tz_name: Provider timezone name (UTC when omitted)
    """
    minutes = parse_hhmm(scheduled_time)
    naive = datetime.combine(scheduled_date, time(minutes // 60, minutes % 60))
    local = get_timezone(tz_name).localize(naive)
    return local.astimezone(timezone.utc)


def hours_until(moment: datetime, now: Optional[datetime] = None) -> float:
    """Hours from ``now`` (UTC) until ``moment``; negative when in the past."""
    now = now or utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - now).total_seconds() / 3600


def local_today(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """Current calendar date in the given timezone."""
    now = now or utc_now()
    return now.astimezone(get_timezone(tz_name)).date()


def review_edit_window_open(created_at: datetime, now: Optional[datetime] = None) -> bool:
    """A review may be edited for 7 days after it was created."""
    return -hours_until(created_at, now) <= REVIEW_EDIT_WINDOW_DAYS * 24


def review_delete_window_open(
    created_at: datetime, now: Optional[datetime] = None
) -> bool:
    """An author may delete their review within 24 hours of creating it."""
    return -hours_until(created_at, now) <= REVIEW_DELETE_WINDOW_HOURS


def add_days(target_date: date, days: int) -> date:
    """Shift a calendar date by a number of days."""
    return target_date + timedelta(days=days)
