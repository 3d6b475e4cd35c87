"""
Availability resolver.

Answers two questions for a provider on a calendar date:

- which start times can a service of N minutes be booked at (enumeration),
- can it be booked at one specific start time (validation at booking time).

Both paths read the same two collections from the datastore (active
working-hours windows for the weekday and occupying bookings for the date)
and share one overlap rule, so a slot offered to the UI is exactly a slot the
backend accepts.
"""

import logging
from datetime import date
from typing import List, Optional, Protocol, Sequence

from models.availability import (
    DayAvailability,
    OccupiedInterval,
    WindowView,
    WorkingHoursSlot,
)
from scheduling.overlap import find_conflicts, occupied_spans, window_contains
from scheduling.results import SlotCheckResult, SlotRejection
from scheduling.slots import DEFAULT_GRANULARITY_MINUTES, enumerate_slots
from utils.constants import DAY_NAMES, PROVIDER_NOT_WORKING_MESSAGE
from utils.datetime_utils import day_of_week, parse_hhmm
from utils.exceptions import InvalidInputError
from utils.validation import validate_duration, validate_identifier, validate_time_string

logger = logging.getLogger(__name__)


class AvailabilityStore(Protocol):
    """Datastore reads the resolver depends on."""

    async def get_working_hours(
        self, provider_id: str, day_of_week: int
    ) -> List[WorkingHoursSlot]:
        ...

    async def get_occupied_intervals(
        self, provider_id: str, scheduled_date: date
    ) -> List[OccupiedInterval]:
        ...


def compute_day_availability(
    target_date: date,
    windows: Sequence[WorkingHoursSlot],
    occupied: Sequence[OccupiedInterval],
    duration_minutes: int,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> DayAvailability:
    """Pure enumeration over already-fetched windows and bookings."""
    weekday = day_of_week(target_date)
    active = [w for w in windows if w.is_active and w.day_of_week == weekday]

    if not active:
        return DayAvailability(
            date=target_date,
            day_of_week=weekday,
            day_name=DAY_NAMES[weekday],
            message=PROVIDER_NOT_WORKING_MESSAGE,
        )

    return DayAvailability(
        date=target_date,
        day_of_week=weekday,
        day_name=DAY_NAMES[weekday],
        available_slots=enumerate_slots(
            active, duration_minutes, occupied, granularity_minutes
        ),
        working_hours=[
            WindowView(start_time=w.start_time, end_time=w.end_time) for w in active
        ],
    )


def evaluate_slot(
    target_date: date,
    start_time: str,
    duration_minutes: int,
    windows: Sequence[WorkingHoursSlot],
    occupied: Sequence[OccupiedInterval],
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> SlotCheckResult:
    """Pure validation of one candidate start time."""
    if not validate_time_string(start_time) or not validate_duration(duration_minutes):
        return SlotCheckResult.rejected(SlotRejection.INVALID_INPUT)

    weekday = day_of_week(target_date)
    active = [w for w in windows if w.is_active and w.day_of_week == weekday]
    if not active:
        return SlotCheckResult.rejected(SlotRejection.PROVIDER_NOT_WORKING)

    start = parse_hhmm(start_time)
    end = start + duration_minutes

    # Only starts on a window's step grid are ever offered
    fits = any(
        window_contains(w, start, end)
        and (start - w.start_minutes) % granularity_minutes == 0
        for w in active
    )
    if not fits:
        return SlotCheckResult.rejected(SlotRejection.OUTSIDE_WORKING_HOURS)

    conflicts = find_conflicts(start, end, occupied_spans(occupied))
    if conflicts:
        return SlotCheckResult.rejected(SlotRejection.SLOT_CONFLICT, conflicts)

    return SlotCheckResult.accepted()


class AvailabilityResolver:
    """
    Computes and validates bookable slots against the datastore.

    The resolver never writes; datastore failures propagate to the caller.
    """

    def __init__(
        self,
        store: AvailabilityStore,
        granularity_minutes: Optional[int] = None,
    ):
        if granularity_minutes is None:
            from config import settings

            granularity_minutes = settings.slot_granularity_minutes
        self.store = store
        self.granularity_minutes = granularity_minutes

    async def _load(self, provider_id: str, target_date: date):
        weekday = day_of_week(target_date)
        windows = await self.store.get_working_hours(provider_id, weekday)
        if not any(w.is_active for w in windows):
            return [], []
        occupied = await self.store.get_occupied_intervals(provider_id, target_date)
        return windows, occupied

    async def get_day_availability(
        self, provider_id: str, target_date: date, duration_minutes: int
    ) -> DayAvailability:
        """
        Enumerate bookable start times for a provider on a date.

        Raises:
            InvalidInputError: If provider ID or duration is malformed
        """
        if not validate_identifier(provider_id):
            raise InvalidInputError("providerId is required")
        if not validate_duration(duration_minutes):
            raise InvalidInputError(f"Invalid duration: {duration_minutes}")

        windows, occupied = await self._load(provider_id, target_date)
        result = compute_day_availability(
            target_date, windows, occupied, duration_minutes, self.granularity_minutes
        )

        logger.debug(
            f"Availability for provider {provider_id} on {target_date}: "
            f"{len(result.available_slots)} slots ({duration_minutes} min)"
        )
        return result

    async def check_slot(
        self,
        provider_id: str,
        target_date: date,
        start_time: str,
        duration_minutes: int,
    ) -> SlotCheckResult:
        """Validate that one start time is inside working hours and unoccupied."""
        if not validate_identifier(provider_id):
            return SlotCheckResult.rejected(SlotRejection.INVALID_INPUT)
        if not validate_time_string(start_time) or not validate_duration(duration_minutes):
            return SlotCheckResult.rejected(SlotRejection.INVALID_INPUT)

        windows, occupied = await self._load(provider_id, target_date)
        result = evaluate_slot(
            target_date,
            start_time,
            duration_minutes,
            windows,
            occupied,
            self.granularity_minutes,
        )

        if not result.ok:
            logger.info(
                f"Slot {target_date} {start_time} rejected for provider "
                f"{provider_id}: {result.reason.value}"
            )
        return result
