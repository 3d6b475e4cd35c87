"""
Overlap detection for booking intervals.

Every interval is half-open ``[start, end)`` in minutes since midnight, so a
booking ending at 10:00 does not collide with one starting at 10:00. Both slot
enumeration and single-slot validation go through ``find_conflicts``.
"""

from typing import Iterable, List, Tuple

from models.availability import OccupiedInterval, WorkingHoursSlot

Interval = Tuple[int, int]


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Standard half-open interval intersection: a < d and c < b."""
    return a_start < b_end and b_start < a_end


def occupied_spans(occupied: Iterable[OccupiedInterval]) -> List[Interval]:
    """Convert occupied bookings to (start, end) minute spans."""
    return [(item.start_minutes, item.end_minutes) for item in occupied]


def find_conflicts(start: int, end: int, spans: Iterable[Interval]) -> List[Interval]:
    """
    Return every occupied span that intersects the candidate ``[start, end)``.

    Covers the three cases a UI usually reasons about: the candidate starts
    inside a booking, ends inside one, or swallows one completely.
    """
    return [span for span in spans if intervals_overlap(start, end, span[0], span[1])]


def has_conflict(start: int, end: int, spans: Iterable[Interval]) -> bool:
    """True if the candidate interval collides with any occupied span."""
    return any(intervals_overlap(start, end, s, e) for s, e in spans)


def window_contains(window: WorkingHoursSlot, start: int, end: int) -> bool:
    """True if ``[start, end)`` fits entirely inside the working-hours window."""
    return window.start_minutes <= start and end <= window.end_minutes


def windows_overlap(a: WorkingHoursSlot, b_start: int, b_end: int) -> bool:
    """Used by working-hours management to refuse overlapping windows."""
    return intervals_overlap(a.start_minutes, a.end_minutes, b_start, b_end)
