"""Working-hours and computed availability models."""

from datetime import date as date_type
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from utils.datetime_utils import parse_hhmm
from utils.validation import validate_time_string


class WorkingHoursSlot(BaseModel):
    """A provider's working-hours window on one weekday."""

    id: Optional[str] = None
    user_id: str
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday..6=Saturday")
    start_time: str
    end_time: str
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "uuid-here",
                "day_of_week": 1,
                "start_time": "09:00",
                "end_time": "12:00",
                "is_active": True,
            }
        }

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end_time)


class WorkingHoursCreate(BaseModel):
    """Working-hours creation payload."""

    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str
    end_time: str
    is_active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not validate_time_string(v):
            raise ValueError("Invalid time format (HH:MM)")
        return v

    @model_validator(mode="after")
    def validate_order(self) -> "WorkingHoursCreate":
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class OccupiedInterval(BaseModel):
    """Time taken by an occupying booking: [start_time, start_time + duration)."""

    start_time: str
    duration_minutes: int = Field(..., gt=0)

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes


class WindowView(BaseModel):
    """Working-hours window as shown next to the slot list."""

    start_time: str
    end_time: str


class DayAvailability(BaseModel):
    """Bookable start times for one provider on one date."""

    date: date_type
    day_of_week: int
    day_name: str
    available_slots: List[str] = Field(default_factory=list)
    working_hours: List[WindowView] = Field(default_factory=list)
    message: Optional[str] = None

    def to_response(self) -> dict:
        """Payload shape returned by the availability endpoint."""
        payload = {
            "date": self.date.isoformat(),
            "dayOfWeek": self.day_of_week,
            "dayName": self.day_name,
            "availableSlots": list(self.available_slots),
            "workingHours": [
                {"startTime": w.start_time, "endTime": w.end_time}
                for w in self.working_hours
            ],
        }
        if self.message:
            payload["message"] = self.message
        return payload
