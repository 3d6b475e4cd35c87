"""
Booking workflow service.

Ties the availability resolver, the status state machine and the strike
counter to the datastore and the notification sink. Refusals are raised as
``BookingError`` subclasses; datastore failures surface as ``DatabaseError``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from models.booking import Booking, BookingCreate, BookingStatus, BookingStatusUpdate
from models.user import User, UserRole
from scheduling.availability import AvailabilityResolver
from scheduling.results import SlotRejection
from scheduling.status import ActorRole, TransitionResult, resolve_actor_role, transition
from scheduling.strikes import StrikeOutcome, StrikePolicy
from utils.datetime_utils import booking_start_utc, local_today, to_iso_string, utc_now
from utils.exceptions import (
    BookingLimitError,
    ClientBannedError,
    DatabaseError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    SlotConflictError,
    SlotUnavailableError,
)

logger = logging.getLogger(__name__)

DELETABLE_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.REJECTED})

# Event sent to the other party after each accepted status change
STATUS_EVENTS = {
    BookingStatus.CONFIRMED: "booking_confirmed",
    BookingStatus.REJECTED: "booking_rejected",
    BookingStatus.COMPLETED: "booking_completed",
    BookingStatus.CANCELLED: "booking_cancelled",
}


@dataclass(frozen=True)
class StatusChange:
    """Result of ``BookingService.update_status``."""

    booking: Booking
    transition: TransitionResult
    strikes: Optional[StrikeOutcome] = None

    @property
    def message(self) -> str:
        return self.transition.message


class BookingService:
    """Validate-and-create plus the status workflow for bookings."""

    def __init__(
        self,
        db,
        notifier=None,
        resolver: Optional[AvailabilityResolver] = None,
        strike_policy: Optional[StrikePolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        tz_name: Optional[str] = None,
        max_active_bookings: Optional[int] = None,
        late_cancellation_hours: Optional[int] = None,
    ):
        from config import settings

        self.db = db
        self.notifier = notifier
        self.resolver = resolver or AvailabilityResolver(db)
        self.strike_policy = strike_policy or StrikePolicy.from_settings()
        self.clock = clock or utc_now
        self.tz_name = tz_name or settings.timezone
        self.max_active_bookings = (
            max_active_bookings
            if max_active_bookings is not None
            else settings.max_active_bookings
        )
        self.late_cancellation_hours = (
            late_cancellation_hours
            if late_cancellation_hours is not None
            else settings.late_cancellation_hours
        )

    # ========== Create ==========

    async def create_booking(self, client: User, data: BookingCreate) -> Booking:
        """
        Validate a client's request and create a PENDING booking.

        Raises:
            PermissionDeniedError: If the user is not a client or books their own service
            ClientBannedError: If the client is suspended
            InvalidInputError: For past dates or an unknown worker
            NotFoundError: If the service does not exist or is inactive
            BookingLimitError: If the client holds too many active bookings
            SlotUnavailableError: If the time is outside working hours
            SlotConflictError: If the time overlaps an active booking
        """
        now = self.clock()

        if client.role != UserRole.CLIENT:
            raise PermissionDeniedError("Only clients can create bookings")

        if client.is_banned(now):
            raise ClientBannedError(
                "Your booking access is suspended until "
                f"{to_iso_string(client.banned_until)} due to late cancellations"
            )

        if data.scheduled_date < local_today(self.tz_name, now):
            raise InvalidInputError("Booking date cannot be in the past")
        start_utc = booking_start_utc(data.scheduled_date, data.scheduled_time, self.tz_name)
        if start_utc <= now:
            raise InvalidInputError("Booking time cannot be in the past")

        service = await self.db.get_service(data.service_id)
        if service is None or not service.is_active:
            raise NotFoundError("Service not found or inactive")

        if service.provider_id == client.id:
            raise PermissionDeniedError("You cannot book your own service")

        active = await self.db.count_active_bookings(client.id)
        if active >= self.max_active_bookings:
            raise BookingLimitError(
                f"You can have at most {self.max_active_bookings} active bookings"
            )

        if data.worker_id:
            worker = await self.db.get_company_worker(data.worker_id, service.provider_id)
            if worker is None:
                raise InvalidInputError("Worker not found or inactive")

        check = await self.resolver.check_slot(
            service.provider_id,
            data.scheduled_date,
            data.scheduled_time,
            service.duration_minutes,
        )
        if not check.ok:
            if check.reason == SlotRejection.SLOT_CONFLICT:
                raise SlotConflictError(check.message)
            if check.reason == SlotRejection.INVALID_INPUT:
                raise InvalidInputError(check.message)
            raise SlotUnavailableError(check.message, reason=check.reason.value)

        booking = Booking(
            provider_id=service.provider_id,
            client_id=client.id,
            service_id=service.id,
            worker_id=data.worker_id,
            scheduled_date=data.scheduled_date,
            scheduled_time=data.scheduled_time,
            duration_minutes=service.duration_minutes,
            status=BookingStatus.PENDING,
            client_notes=data.client_notes,
        )
        # A concurrent insert for the same slot fails here with SlotConflictError
        created = await self.db.create_booking(booking)

        logger.info(
            f"Booking {created.id} created: client {client.id}, provider "
            f"{service.provider_id}, {data.scheduled_date} {data.scheduled_time}"
        )

        provider = await self._get_user_quietly(service.provider_id)
        payload = self._payload(created, service_name=service.name)
        payload["client_name"] = client.display_name
        await self._notify("booking_created", provider, payload)

        return created

    # ========== Status ==========

    async def update_status(
        self, actor: User, booking_id: str, update: BookingStatusUpdate
    ) -> StatusChange:
        """
        Apply a status change requested by ``actor``.

        Raises:
            NotFoundError: If the booking does not exist
            PermissionDeniedError: If the actor may not request this change
            InvalidTransitionError: If the change is not allowed, or the
                booking changed status concurrently
        """
        booking = await self._load(booking_id)
        now = self.clock()

        result = transition(
            booking,
            update.status,
            actor,
            now=now,
            tz_name=self.tz_name,
            late_hours=self.late_cancellation_hours,
        )

        provider_notes = (
            update.provider_notes if result.actor_role == ActorRole.PROVIDER else None
        )
        updated = await self.db.update_booking_status(
            booking_id,
            result.status,
            expected_status=result.previous,
            provider_notes=provider_notes,
        )
        if updated is None:
            raise InvalidTransitionError(
                "Booking status changed in the meantime, please reload and try again"
            )

        logger.info(
            f"Booking {booking_id}: {result.previous.value} -> {result.status.value} "
            f"by {result.actor_role.value} {actor.id}"
        )

        strikes = None
        if result.late_cancellation:
            strikes = await self._register_strike(booking)

        await self._notify_status_change(updated, result, strikes)
        return StatusChange(booking=updated, transition=result, strikes=strikes)

    # ========== Read / Delete ==========

    async def list_bookings(
        self, user: User, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        """Bookings received by a provider, or made by any other user."""
        return await self.db.get_bookings_for_user(
            user.id, as_provider=user.is_provider, status=status
        )

    async def get_booking(self, user: User, booking_id: str) -> Booking:
        booking = await self._load(booking_id)
        if resolve_actor_role(booking, user) is None:
            raise PermissionDeniedError("You do not have access to this booking")
        return booking

    async def delete_booking(self, user: User, booking_id: str) -> None:
        """
        Delete a finished booking.

        Only the client or an administrator may delete, and only bookings that
        are CANCELLED or REJECTED.
        """
        booking = await self._load(booking_id)

        role = resolve_actor_role(booking, user)
        if role not in (ActorRole.CLIENT, ActorRole.ADMIN):
            raise PermissionDeniedError(
                "Only the client or an administrator can delete this booking"
            )

        if BookingStatus(booking.status) not in DELETABLE_STATUSES:
            raise InvalidTransitionError(
                "Only cancelled or rejected bookings can be deleted"
            )

        await self.db.delete_booking(booking_id)
        logger.info(f"Booking {booking_id} deleted by {role.value} {user.id}")

    # ========== Helpers ==========

    async def _register_strike(self, booking: Booking) -> Optional[StrikeOutcome]:
        """
        Record a late cancellation for the booking's client.

        The cancellation itself is already saved, so a failure here is logged
        and the status change still completes.
        """
        try:
            strikes = await self.db.register_late_cancellation(
                booking.client_id,
                self.strike_policy.threshold,
                self.strike_policy.ban_days,
            )
        except DatabaseError as e:
            logger.error(
                f"Booking {booking.id} cancelled late but the strike for client "
                f"{booking.client_id} was not recorded: {e}",
                exc_info=True,
            )
            return None

        logger.info(
            f"Late cancellation by client {booking.client_id}: "
            f"strikes={strikes.strikes}, suspended={strikes.suspended}"
        )
        return strikes

    async def _load(self, booking_id: str) -> Booking:
        booking = await self.db.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def _payload(self, booking: Booking, service_name: Optional[str] = None) -> dict:
        return {
            "booking_id": booking.id,
            "service_name": service_name or "your service",
            "date": booking.scheduled_date.isoformat(),
            "time": booking.scheduled_time,
            "status": BookingStatus(booking.status).value,
        }

    async def _get_user_quietly(self, user_id: str) -> Optional[User]:
        try:
            return await self.db.get_user(user_id)
        except DatabaseError as e:
            logger.warning(f"Could not load user {user_id} for notification: {e}")
            return None

    async def _notify(self, event: str, recipient: Optional[User], payload: dict) -> None:
        if self.notifier is None or recipient is None:
            return
        await self.notifier.notify(event, recipient, payload)

    async def _notify_status_change(
        self,
        booking: Booking,
        result: TransitionResult,
        strikes: Optional[StrikeOutcome],
    ) -> None:
        if self.notifier is None:
            return

        try:
            service = await self.db.get_service(booking.service_id)
            users = await self.db.get_users_by_ids([booking.client_id, booking.provider_id])
        except DatabaseError as e:
            logger.warning(f"Skipping notifications for booking {booking.id}: {e}")
            return

        payload = self._payload(booking, service.name if service else None)
        if booking.provider_notes:
            payload["provider_notes"] = booking.provider_notes

        client = users.get(booking.client_id)
        provider = users.get(booking.provider_id)
        event = STATUS_EVENTS[result.status]

        if result.status == BookingStatus.CANCELLED:
            payload["cancelled_by"] = result.actor_role.value
            if result.actor_role == ActorRole.CLIENT:
                recipients = [provider]
            elif result.actor_role == ActorRole.PROVIDER:
                recipients = [client]
            else:
                recipients = [client, provider]
        else:
            recipients = [client]

        for recipient in recipients:
            await self._notify(event, recipient, payload)

        if strikes is not None and strikes.suspended:
            await self._notify(
                "client_suspended",
                client,
                {"banned_until": to_iso_string(strikes.banned_until)},
            )
