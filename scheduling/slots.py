"""
Slot generation.

Walks each working-hours window in fixed steps and keeps every start time at
which a service of the requested duration fits inside the window without
touching an occupied interval.
"""

from typing import Iterable, List, Sequence

from models.availability import OccupiedInterval, WorkingHoursSlot
from scheduling.overlap import Interval, has_conflict, occupied_spans
from utils.datetime_utils import format_hhmm

DEFAULT_GRANULARITY_MINUTES = 30


def window_slot_starts(
    window: WorkingHoursSlot,
    duration_minutes: int,
    spans: Sequence[Interval],
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> List[int]:
    """
    Bookable start minutes inside a single window.

    Args:
        window: Working-hours window [start_time, end_time)
        duration_minutes: Length of the service being scheduled
        spans: Occupied (start, end) minute spans for the day
        granularity_minutes: Step between candidate start times

    Returns:
        Ascending list of accepted start minutes
    """
    starts = []
    window_end = window.end_minutes
    current = window.start_minutes

    while current < window_end:
        candidate_end = current + duration_minutes

        # Later candidates only end later
        if candidate_end > window_end:
            break

        if not has_conflict(current, candidate_end, spans):
            starts.append(current)

        current += granularity_minutes

    return starts


def enumerate_slots(
    windows: Iterable[WorkingHoursSlot],
    duration_minutes: int,
    occupied: Iterable[OccupiedInterval],
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> List[str]:
    """
    Bookable "HH:MM" start times across all windows of a day.

    Windows may come back from storage unordered or overlapping, so the result
    is de-duplicated and sorted.
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")

    spans = occupied_spans(occupied)
    accepted = set()

    for window in windows:
        if not window.is_active:
            continue
        accepted.update(
            window_slot_starts(window, duration_minutes, spans, granularity_minutes)
        )

    return [format_hhmm(minutes) for minutes in sorted(accepted)]
