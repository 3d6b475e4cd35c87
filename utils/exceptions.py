"""
Custom exception classes for better error handling.
Provides specific error types instead of generic exceptions.

Booking errors carry a machine-readable ``reason`` and the HTTP status the
API layer should answer with.
"""

from typing import Optional


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class BookingError(Exception):
    """Base exception for expected booking workflow failures."""

    reason = "BookingError"
    status_code = 400

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if reason:
            self.reason = reason


class InvalidInputError(BookingError):
    """Raised when caller-supplied input is malformed."""

    reason = "InvalidInput"
    status_code = 400


class NotFoundError(BookingError):
    """Raised when a referenced record does not exist."""

    reason = "NotFound"
    status_code = 404


class PermissionDeniedError(BookingError):
    """Raised when the actor may not perform the operation."""

    reason = "PermissionDenied"
    status_code = 403


class SlotUnavailableError(BookingError):
    """Raised when a requested start time cannot be booked."""

    reason = "OutsideWorkingHours"
    status_code = 400


class SlotConflictError(SlotUnavailableError):
    """Raised when the requested interval overlaps an occupying booking."""

    reason = "SlotConflict"
    status_code = 409


class InvalidTransitionError(BookingError):
    """Raised when a booking status change is not allowed."""

    reason = "InvalidTransition"
    status_code = 400


class ClientBannedError(BookingError):
    """Raised when a suspended client tries to book."""

    reason = "ClientBanned"
    status_code = 403


class BookingLimitError(BookingError):
    """Raised when a client already holds the maximum number of active bookings."""

    reason = "BookingLimitReached"
    status_code = 400


class WorkingHoursOverlapError(BookingError):
    """Raised when a new working-hours window overlaps an existing one."""

    reason = "WorkingHoursOverlap"
    status_code = 400


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass
