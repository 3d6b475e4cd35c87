"""
Late-cancellation strikes.

Each late client cancellation adds a strike. Reaching the threshold suspends
the client for ``ban_days`` and resets the counter, so the next suspension
needs a full new run of strikes.

The datastore applies the same rule atomically (see the
``register_late_cancellation`` SQL function); ``StrikePolicy.apply`` states
the same rule in Python and must be kept in sync with it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from utils.datetime_utils import utc_now


@dataclass(frozen=True)
class StrikeOutcome:
    """Counter state after one late cancellation."""

    strikes: int
    banned_until: Optional[datetime]
    suspended: bool


@dataclass(frozen=True)
class StrikePolicy:
    threshold: int = 3
    ban_days: int = 7

    @classmethod
    def from_settings(cls) -> "StrikePolicy":
        from config import settings

        return cls(threshold=settings.strike_threshold, ban_days=settings.ban_days)

    def apply(
        self,
        strikes: int,
        banned_until: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> StrikeOutcome:
        """
        Register one late cancellation on top of the current counter.

        Mirrors the ``register_late_cancellation`` SQL function in
        db/migrations/001_booking_core.sql, which is what runs in production;
        change both together.
        """
        strikes = max(strikes, 0) + 1

        if strikes >= self.threshold:
            now = now or utc_now()
            return StrikeOutcome(
                strikes=0,
                banned_until=now + timedelta(days=self.ban_days),
                suspended=True,
            )

        return StrikeOutcome(strikes=strikes, banned_until=banned_until, suspended=False)
