"""Typed outcomes of availability checks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class SlotRejection(str, Enum):
    """Why a requested start time cannot be booked."""

    PROVIDER_NOT_WORKING = "ProviderNotWorkingThisDay"
    OUTSIDE_WORKING_HOURS = "OutsideWorkingHours"
    SLOT_CONFLICT = "SlotConflict"
    INVALID_INPUT = "InvalidInput"


REJECTION_MESSAGES = {
    SlotRejection.PROVIDER_NOT_WORKING: "Provider does not work on this day",
    SlotRejection.OUTSIDE_WORKING_HOURS: "Requested time is outside working hours",
    SlotRejection.SLOT_CONFLICT: "This time slot is already taken. Please choose another.",
    SlotRejection.INVALID_INPUT: "Invalid date, time or duration",
}


@dataclass(frozen=True)
class SlotCheckResult:
    """Result of validating one candidate start time."""

    ok: bool
    reason: Optional[SlotRejection] = None
    conflicts: Tuple[Tuple[int, int], ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        if self.ok or self.reason is None:
            return ""
        return REJECTION_MESSAGES[self.reason]

    @classmethod
    def accepted(cls) -> "SlotCheckResult":
        return cls(ok=True)

    @classmethod
    def rejected(
        cls, reason: SlotRejection, conflicts: List[Tuple[int, int]] = None
    ) -> "SlotCheckResult":
        return cls(ok=False, reason=reason, conflicts=tuple(conflicts or ()))

    def __bool__(self) -> bool:
        return self.ok
