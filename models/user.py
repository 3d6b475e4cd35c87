"""User models for clients and providers."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """Marketplace roles."""

    CLIENT = "CLIENT"
    FREELANCER = "FREELANCER"
    COMPANY = "COMPANY"
    ADMIN = "ADMIN"


PROVIDER_ROLES = frozenset({UserRole.FREELANCER, UserRole.COMPANY})


class User(BaseModel):
    """User model."""

    id: str
    email: Optional[EmailStr] = None
    first_name: str = ""
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    role: UserRole = UserRole.CLIENT
    cancellation_strikes: int = Field(default=0, ge=0)
    banned_until: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "uuid-here",
                "email": "marko@example.com",
                "first_name": "Marko",
                "last_name": "Marković",
                "role": "CLIENT",
                "cancellation_strikes": 0,
            }
        }

    @property
    def is_provider(self) -> bool:
        return self.role in PROVIDER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def display_name(self) -> str:
        """Company name for companies, otherwise the person's full name."""
        if self.company_name:
            return self.company_name
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def is_banned(self, now: Optional[datetime] = None) -> bool:
        """True while a late-cancellation suspension is in force."""
        if self.banned_until is None:
            return False
        now = now or datetime.now(timezone.utc)
        banned_until = self.banned_until
        if banned_until.tzinfo is None:
            banned_until = banned_until.replace(tzinfo=timezone.utc)
        return banned_until > now
