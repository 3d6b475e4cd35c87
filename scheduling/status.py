"""
Booking status state machine.

Decides whether a user may move a booking from its current status to a
requested one. Every refused request raises with a descriptive message and
leaves the booking untouched; nothing here silently no-ops.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from models.booking import Booking, BookingStatus
from models.user import User
from utils.datetime_utils import booking_start_utc, hours_until, utc_now
from utils.exceptions import InvalidTransitionError, PermissionDeniedError

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REJECTED: frozenset(),
}


class ActorRole(str, Enum):
    """How the acting user relates to the booking."""

    PROVIDER = "provider"
    CLIENT = "client"
    ADMIN = "admin"


# Which relations may request each target status
PERMITTED_ACTORS: Dict[BookingStatus, FrozenSet[ActorRole]] = {
    BookingStatus.CONFIRMED: frozenset({ActorRole.PROVIDER, ActorRole.ADMIN}),
    BookingStatus.REJECTED: frozenset({ActorRole.PROVIDER, ActorRole.ADMIN}),
    BookingStatus.COMPLETED: frozenset({ActorRole.PROVIDER}),
    BookingStatus.CANCELLED: frozenset(
        {ActorRole.CLIENT, ActorRole.PROVIDER, ActorRole.ADMIN}
    ),
}

ACTION_MESSAGES = {
    BookingStatus.CONFIRMED: "Booking confirmed",
    BookingStatus.REJECTED: "Booking rejected",
    BookingStatus.COMPLETED: "Booking marked as completed",
    BookingStatus.CANCELLED: "Booking cancelled",
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of an accepted status change."""

    previous: BookingStatus
    status: BookingStatus
    actor_role: ActorRole
    late_cancellation: bool = False

    @property
    def message(self) -> str:
        return ACTION_MESSAGES.get(self.status, "")


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """True if the table allows ``current -> target``."""
    return target in ALLOWED_TRANSITIONS.get(BookingStatus(current), frozenset())


def resolve_actor_role(booking: Booking, actor: User) -> Optional[ActorRole]:
    """
    Relation of ``actor`` to ``booking``; None if they have no access.

    Providing a booking takes precedence over being an administrator so that
    an admin who is also the provider is treated as the provider.
    """
    from config import settings

    if booking.provider_id == actor.id:
        return ActorRole.PROVIDER
    if booking.client_id == actor.id:
        return ActorRole.CLIENT
    if actor.is_admin or settings.is_admin(actor.id):
        return ActorRole.ADMIN
    return None


def is_late_cancellation(
    booking: Booking,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
    late_hours: int = 24,
) -> bool:
    """True if the booking starts in less than ``late_hours`` hours from now."""
    start = booking_start_utc(booking.scheduled_date, booking.scheduled_time, tz_name)
    return hours_until(start, now or utc_now()) < late_hours


def transition(
    booking: Booking,
    target: BookingStatus,
    actor: User,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
    late_hours: int = 24,
) -> TransitionResult:
    """
    Validate a status change requested by ``actor``.

    Returns:
        TransitionResult describing the accepted change

    Raises:
        PermissionDeniedError: If the actor may not touch the booking or
            request this status
        InvalidTransitionError: If the change is not in the transition table
    """
    target = BookingStatus(target)
    current = BookingStatus(booking.status)

    role = resolve_actor_role(booking, actor)
    if role is None:
        raise PermissionDeniedError("You do not have access to this booking")

    if role not in PERMITTED_ACTORS.get(target, frozenset()):
        raise PermissionDeniedError(
            f"Only the provider can set a booking to {target.value}"
            if target != BookingStatus.CANCELLED
            else "You cannot cancel this booking"
        )

    if current == target:
        raise InvalidTransitionError(f"Booking already has status {current.value}")

    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot change status from {current.value} to {target.value}"
        )

    # Strikes only apply to bookings the provider had already accepted
    late = (
        target == BookingStatus.CANCELLED
        and role == ActorRole.CLIENT
        and current == BookingStatus.CONFIRMED
        and is_late_cancellation(booking, now, tz_name, late_hours)
    )

    return TransitionResult(
        previous=current, status=target, actor_role=role, late_cancellation=late
    )
