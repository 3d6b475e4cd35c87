"""Booking models for provider appointments."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from utils.constants import MAX_NOTES_LENGTH
from utils.validation import sanitize_text, validate_time_string


class BookingStatus(str, Enum):
    """Booking status."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"

    @property
    def is_occupying(self) -> bool:
        return is_occupying(self)


OCCUPYING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def is_occupying(status) -> bool:
    """Only PENDING and CONFIRMED bookings block their time interval."""
    try:
        return BookingStatus(status) in OCCUPYING_STATUSES
    except ValueError:
        return False


class Booking(BaseModel):
    """Booking model."""

    id: Optional[str] = None
    provider_id: str = Field(..., description="Provider user ID")
    client_id: str = Field(..., description="Client user ID")
    service_id: str = Field(..., description="Booked service ID")
    worker_id: Optional[str] = None
    scheduled_date: date
    scheduled_time: str = Field(..., description="Start time, HH:MM provider local")
    duration_minutes: int = Field(..., gt=0)
    status: BookingStatus = BookingStatus.PENDING
    client_notes: Optional[str] = None
    provider_notes: Optional[str] = None
    reminder_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "provider_id": "uuid-here",
                "client_id": "uuid-here",
                "service_id": "uuid-here",
                "scheduled_date": "2026-01-19",
                "scheduled_time": "10:00",
                "duration_minutes": 60,
                "status": "PENDING",
            }
        }

    @property
    def is_occupying(self) -> bool:
        return is_occupying(self.status)


class BookingCreate(BaseModel):
    """Booking creation request sent by a client."""

    service_id: str
    scheduled_date: date
    scheduled_time: str
    client_notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    worker_id: Optional[str] = None

    @field_validator("scheduled_time")
    @classmethod
    def validate_scheduled_time(cls, v: str) -> str:
        if not validate_time_string(v):
            raise ValueError("Invalid time format (HH:MM)")
        return v

    @field_validator("client_notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return sanitize_text(v, MAX_NOTES_LENGTH) or None


class BookingStatusUpdate(BaseModel):
    """Status change request."""

    status: BookingStatus
    provider_notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("status")
    @classmethod
    def validate_target_status(cls, v: BookingStatus) -> BookingStatus:
        if v == BookingStatus.PENDING:
            raise ValueError("Bookings cannot be moved back to PENDING")
        return v
