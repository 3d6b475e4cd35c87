"""Service models for provider offerings and company workers."""

from typing import Optional

from pydantic import BaseModel, Field


class Service(BaseModel):
    """A service offered by a provider; its duration drives slot length."""

    id: str
    provider_id: str
    name: str
    description: Optional[str] = None
    price: float = Field(default=0, ge=0)
    duration_minutes: int = Field(..., gt=0, description="Duration in minutes")
    is_active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "id": "uuid-here",
                "provider_id": "uuid-here",
                "name": "Šišanje",
                "price": 1500,
                "duration_minutes": 60,
                "is_active": True,
            }
        }


class Worker(BaseModel):
    """Employee of a company provider who can be assigned to bookings."""

    id: str
    company_id: str
    first_name: str
    last_name: str
    position: Optional[str] = None
    is_active: bool = True
