"""Working-hours management for providers."""

import logging
from typing import List

from models.availability import WorkingHoursCreate, WorkingHoursSlot
from models.user import User
from scheduling.overlap import windows_overlap
from utils.constants import DAY_NAMES, DAYS_IN_WEEK
from utils.datetime_utils import parse_hhmm
from utils.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    WorkingHoursOverlapError,
)

logger = logging.getLogger(__name__)


def _require_provider(user: User) -> None:
    if not user.is_provider:
        raise PermissionDeniedError(
            "Only freelancers and companies can manage working hours"
        )


def group_by_day(windows: List[WorkingHoursSlot]) -> List[dict]:
    """
    Bucket windows into the seven weekdays (Sunday first).

    Every day is present, including days without windows.
    """
    grouped = [
        {"day_of_week": day, "day_name": DAY_NAMES[day], "slots": []}
        for day in range(DAYS_IN_WEEK)
    ]
    for window in sorted(windows, key=lambda w: (w.day_of_week, w.start_minutes)):
        grouped[window.day_of_week]["slots"].append(window)
    return grouped


async def list_grouped(db, provider: User) -> List[dict]:
    """Provider's working hours grouped by weekday."""
    _require_provider(provider)
    windows = await db.list_working_hours(provider.id)
    return group_by_day(windows)


async def add_window(db, provider: User, data: WorkingHoursCreate) -> WorkingHoursSlot:
    """
    Create a working-hours window.

    Raises:
        PermissionDeniedError: If the user is not a provider
        WorkingHoursOverlapError: If the window overlaps an active window
            on the same day
    """
    _require_provider(provider)

    start = parse_hhmm(data.start_time)
    end = parse_hhmm(data.end_time)

    existing = await db.get_working_hours(provider.id, data.day_of_week)
    for window in existing:
        if window.is_active and windows_overlap(window, start, end):
            raise WorkingHoursOverlapError(
                f"Working hours overlap with existing window "
                f"{window.start_time}-{window.end_time} on {DAY_NAMES[data.day_of_week]}"
            )

    created = await db.create_working_hours(provider.id, data)
    logger.info(
        f"Provider {provider.id} added working hours "
        f"{data.start_time}-{data.end_time} (day {data.day_of_week})"
    )
    return created


async def remove_window(db, provider: User, working_hours_id: str) -> None:
    """
    Delete one of the provider's own windows.

    Raises:
        NotFoundError: If the window does not exist
        PermissionDeniedError: If it belongs to someone else
    """
    _require_provider(provider)

    window = await db.get_working_hours_by_id(working_hours_id)
    if window is None:
        raise NotFoundError("Working hours not found")
    if window.user_id != provider.id:
        raise PermissionDeniedError("You can only delete your own working hours")

    await db.delete_working_hours(working_hours_id)
    logger.info(f"Provider {provider.id} removed working hours {working_hours_id}")
