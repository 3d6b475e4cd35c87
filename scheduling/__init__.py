"""Availability, conflict detection and booking workflow."""

from .availability import AvailabilityResolver, compute_day_availability, evaluate_slot
from .booking_service import BookingService, StatusChange
from .results import SlotCheckResult, SlotRejection
from .status import ALLOWED_TRANSITIONS, TransitionResult, can_transition, transition
from .strikes import StrikeOutcome, StrikePolicy

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AvailabilityResolver",
    "BookingService",
    "SlotCheckResult",
    "SlotRejection",
    "StatusChange",
    "StrikeOutcome",
    "StrikePolicy",
    "TransitionResult",
    "can_transition",
    "compute_day_availability",
    "evaluate_slot",
    "transition",
]
