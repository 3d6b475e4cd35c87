"""Pydantic models for data validation and serialization."""

from .availability import (
    DayAvailability,
    OccupiedInterval,
    WindowView,
    WorkingHoursCreate,
    WorkingHoursSlot,
)
from .booking import (
    OCCUPYING_STATUSES,
    Booking,
    BookingCreate,
    BookingStatus,
    BookingStatusUpdate,
    is_occupying,
)
from .service import Service, Worker
from .user import PROVIDER_ROLES, User, UserRole

__all__ = [
    "Booking",
    "BookingCreate",
    "BookingStatus",
    "BookingStatusUpdate",
    "DayAvailability",
    "OCCUPYING_STATUSES",
    "OccupiedInterval",
    "PROVIDER_ROLES",
    "Service",
    "User",
    "UserRole",
    "WindowView",
    "Worker",
    "WorkingHoursCreate",
    "WorkingHoursSlot",
    "is_occupying",
]
