"""
Supabase database client for the booking core.
Handles all database interactions for users, services, working hours and bookings.

Row Level Security (RLS) Notes:
==============================
This client uses the service_role key, which bypasses RLS. Policies in the
Supabase dashboard should still restrict the anon key:
1. Users can only read/update their own row
2. Bookings are readable by their client and their provider
3. Working hours are readable by everyone, writable by their owner

Concurrency guarantees come from the schema in ``db/migrations``:
- a partial unique index on bookings(provider_id, scheduled_date, scheduled_time)
  for PENDING/CONFIRMED rows closes the double-booking race,
- ``register_late_cancellation`` increments strikes in a single statement.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.availability import OccupiedInterval, WorkingHoursCreate, WorkingHoursSlot
from models.booking import OCCUPYING_STATUSES, Booking, BookingStatus
from models.service import Service, Worker
from models.user import User
from scheduling.strikes import StrikeOutcome
from utils.datetime_utils import parse_iso_datetime, to_iso_string, utc_now
from utils.exceptions import DatabaseError, SlotConflictError

UNIQUE_VIOLATION = "23505"


class SupabaseClient:
    """
    Supabase database client wrapper.

    Includes a short in-memory cache for user lookups, which every
    authenticated request performs.
    """

    def __init__(self):
        self.client: SupabaseClientType = create_client(
            settings.supabase_url, settings.supabase_key
        )

        # Format: {cache_key: (data, expiry_time)}
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(minutes=1)

    # ========== Cache Helpers ==========

    def _get_from_cache(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            return None

        data, expiry = self._cache[key]
        if utc_now() > expiry:
            del self._cache[key]
            return None

        return data

    def _set_cache(self, key: str, value: Any) -> None:
        """Set value in cache with TTL."""
        self._cache[key] = (value, utc_now() + self._cache_ttl)

    def _clear_cache(self, pattern: Optional[str] = None) -> None:
        """Clear cache entries matching pattern, or all if pattern is None."""
        if pattern is None:
            self._cache.clear()
        else:
            for k in [k for k in self._cache if pattern in k]:
                del self._cache[k]

    # ========== User Operations ==========

    async def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID (cached)."""
        cache_key = f"user:{user_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        try:
            response = (
                self.client.table("users").select("*").eq("id", user_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get user: {e}") from e

        if not response.data:
            return None

        user = self._parse_user(response.data[0])
        self._set_cache(cache_key, user)
        return user

    async def get_users_by_ids(self, user_ids: List[str]) -> Dict[str, User]:
        """
        Batch fetch users by IDs.

        Returns:
            Dictionary mapping user_id -> User
        """
        if not user_ids:
            return {}

        try:
            response = (
                self.client.table("users").select("*").in_("id", user_ids).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get users by IDs: {e}") from e

        users = {}
        for item in response.data:
            user = self._parse_user(item)
            users[user.id] = user
        return users

    async def register_late_cancellation(
        self,
        client_id: str,
        threshold: Optional[int] = None,
        ban_days: Optional[int] = None,
    ) -> StrikeOutcome:
        """
        Add a strike to a client in one atomic database call.

        The SQL function increments the counter and, at ``threshold``, sets
        ``banned_until`` and resets the counter within the same UPDATE.
        Threshold and ban length default to the configured policy.
        """
        if threshold is None:
            threshold = settings.strike_threshold
        if ban_days is None:
            ban_days = settings.ban_days

        try:
            response = self.client.rpc(
                "register_late_cancellation",
                {
                    "p_user_id": client_id,
                    "p_threshold": threshold,
                    "p_ban_days": ban_days,
                },
            ).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to register late cancellation: {e}") from e
        finally:
            self._clear_cache(f"user:{client_id}")

        row = response.data[0] if isinstance(response.data, list) else response.data
        if not row:
            raise DatabaseError(f"User {client_id} not found for strike update")

        banned_until = row.get("banned_until")
        return StrikeOutcome(
            strikes=row.get("cancellation_strikes", 0),
            banned_until=parse_iso_datetime(banned_until) if banned_until else None,
            suspended=bool(row.get("suspended", False)),
        )

    # ========== Service & Worker Operations ==========

    async def get_service(self, service_id: str) -> Optional[Service]:
        """Get service by ID."""
        try:
            response = (
                self.client.table("services").select("*").eq("id", service_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get service: {e}") from e

        if response.data:
            return Service(**response.data[0])
        return None

    async def get_company_worker(
        self, worker_id: str, company_id: str
    ) -> Optional[Worker]:
        """Get an active worker that belongs to the given company."""
        try:
            response = (
                self.client.table("workers")
                .select("*")
                .eq("id", worker_id)
                .eq("company_id", company_id)
                .eq("is_active", True)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get worker: {e}") from e

        if response.data:
            return Worker(**response.data[0])
        return None

    # ========== Working Hours Operations ==========

    async def get_working_hours(
        self, provider_id: str, day_of_week: int
    ) -> List[WorkingHoursSlot]:
        """Active working-hours windows of a provider for one weekday."""
        try:
            response = (
                self.client.table("working_hours")
                .select("*")
                .eq("user_id", provider_id)
                .eq("day_of_week", day_of_week)
                .eq("is_active", True)
                .order("start_time", desc=False)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get working hours: {e}") from e

        return [self._parse_working_hours(item) for item in response.data]

    async def list_working_hours(self, provider_id: str) -> List[WorkingHoursSlot]:
        """All working-hours windows of a provider, ordered by weekday."""
        try:
            response = (
                self.client.table("working_hours")
                .select("*")
                .eq("user_id", provider_id)
                .order("day_of_week", desc=False)
                .order("start_time", desc=False)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to list working hours: {e}") from e

        return [self._parse_working_hours(item) for item in response.data]

    async def get_working_hours_by_id(
        self, working_hours_id: str
    ) -> Optional[WorkingHoursSlot]:
        try:
            response = (
                self.client.table("working_hours")
                .select("*")
                .eq("id", working_hours_id)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get working hours: {e}") from e

        if response.data:
            return self._parse_working_hours(response.data[0])
        return None

    async def create_working_hours(
        self, user_id: str, data: WorkingHoursCreate
    ) -> WorkingHoursSlot:
        """Create a working-hours window for a provider."""
        payload = data.model_dump()
        payload["user_id"] = user_id

        try:
            response = self.client.table("working_hours").insert(payload).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to create working hours: {e}") from e

        if not response.data:
            raise DatabaseError("Failed to create working hours: no data returned")
        return self._parse_working_hours(response.data[0])

    async def delete_working_hours(self, working_hours_id: str) -> bool:
        try:
            response = (
                self.client.table("working_hours")
                .delete()
                .eq("id", working_hours_id)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to delete working hours: {e}") from e

        return len(response.data) > 0

    # ========== Booking Operations ==========

    async def get_occupied_intervals(
        self, provider_id: str, scheduled_date: date
    ) -> List[OccupiedInterval]:
        """Intervals taken by PENDING/CONFIRMED bookings of a provider on a date."""
        try:
            response = (
                self.client.table("bookings")
                .select("scheduled_time, duration_minutes")
                .eq("provider_id", provider_id)
                .eq("scheduled_date", scheduled_date.isoformat())
                .in_("status", [s.value for s in OCCUPYING_STATUSES])
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get occupied intervals: {e}") from e

        return [
            OccupiedInterval(
                start_time=item["scheduled_time"][:5],
                duration_minutes=item["duration_minutes"],
            )
            for item in response.data
        ]

    async def create_booking(self, booking: Booking) -> Booking:
        """
        Insert a booking.

        Raises:
            SlotConflictError: If another active booking holds the same start
                (unique index violation)
            DatabaseError: For any other datastore failure
        """
        payload = booking.model_dump(
            exclude_none=True, exclude={"id", "created_at", "updated_at"}
        )
        payload["scheduled_date"] = booking.scheduled_date.isoformat()
        payload["status"] = BookingStatus(booking.status).value

        try:
            response = self.client.table("bookings").insert(payload).execute()
        except APIError as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                raise SlotConflictError(
                    "This time slot is already taken. Please choose another."
                ) from e
            raise DatabaseError(f"Failed to create booking: {e}") from e
        except Exception as e:
            raise DatabaseError(f"Failed to create booking: {e}") from e

        if not response.data:
            raise DatabaseError("Failed to create booking: no data returned")
        return self._parse_booking(response.data[0])

    async def get_booking_by_id(self, booking_id: str) -> Optional[Booking]:
        try:
            response = (
                self.client.table("bookings").select("*").eq("id", booking_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to get booking: {e}") from e

        if response.data:
            return self._parse_booking(response.data[0])
        return None

    async def get_bookings_for_user(
        self,
        user_id: str,
        as_provider: bool = False,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        """Bookings made by a client, or received by a provider."""
        column = "provider_id" if as_provider else "client_id"
        try:
            query = self.client.table("bookings").select("*").eq(column, user_id)
            if status:
                query = query.eq("status", BookingStatus(status).value)
            response = query.order("scheduled_date", desc=True).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to get bookings: {e}") from e

        return [self._parse_booking(item) for item in response.data]

    async def count_active_bookings(self, client_id: str) -> int:
        """Number of PENDING/CONFIRMED bookings a client holds."""
        try:
            response = (
                self.client.table("bookings")
                .select("id", count="exact")
                .eq("client_id", client_id)
                .in_("status", [s.value for s in OCCUPYING_STATUSES])
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to count bookings: {e}") from e

        if response.count is not None:
            return response.count
        return len(response.data)

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        expected_status: Optional[BookingStatus] = None,
        provider_notes: Optional[str] = None,
    ) -> Optional[Booking]:
        """
        Update booking status.

        With ``expected_status`` the update only applies if the row still has
        that status, so two concurrent transitions cannot both succeed.
        """
        update_data = {
            "status": BookingStatus(status).value,
            "updated_at": to_iso_string(utc_now()),
        }
        if provider_notes is not None:
            update_data["provider_notes"] = provider_notes

        try:
            query = self.client.table("bookings").update(update_data).eq("id", booking_id)
            if expected_status is not None:
                query = query.eq("status", BookingStatus(expected_status).value)
            response = query.execute()
        except Exception as e:
            raise DatabaseError(f"Failed to update booking status: {e}") from e

        if not response.data:
            return None
        return self._parse_booking(response.data[0])

    async def delete_booking(self, booking_id: str) -> bool:
        try:
            response = (
                self.client.table("bookings").delete().eq("id", booking_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to delete booking: {e}") from e

        return len(response.data) > 0

    async def get_bookings_for_date(
        self,
        scheduled_date: date,
        status: BookingStatus = BookingStatus.CONFIRMED,
        unreminded_only: bool = False,
    ) -> List[Booking]:
        """
        All bookings with the given status on a date (reminder job).

        With ``unreminded_only`` bookings that already got a reminder are skipped.
        """
        try:
            query = (
                self.client.table("bookings")
                .select("*")
                .eq("scheduled_date", scheduled_date.isoformat())
                .eq("status", BookingStatus(status).value)
            )
            if unreminded_only:
                query = query.is_("reminder_sent_at", "null")
            response = query.order("scheduled_time", desc=False).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to get bookings for date: {e}") from e

        return [self._parse_booking(item) for item in response.data]

    async def mark_reminder_sent(self, booking_id: str) -> Optional[Booking]:
        """Mark reminder as sent for a booking."""
        now = to_iso_string(utc_now())
        try:
            response = (
                self.client.table("bookings")
                .update({"reminder_sent_at": now, "updated_at": now})
                .eq("id", booking_id)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"Failed to mark reminder sent: {e}") from e

        if not response.data:
            return None
        return self._parse_booking(response.data[0])

    # ========== Helper Methods ==========

    def _parse_user(self, item: dict) -> User:
        item = item.copy()
        for field in ["banned_until", "created_at", "updated_at"]:
            if item.get(field):
                item[field] = parse_iso_datetime(item[field])
        return User(**item)

    def _parse_working_hours(self, item: dict) -> WorkingHoursSlot:
        item = item.copy()
        # Postgres TIME columns come back as HH:MM:SS
        for field in ["start_time", "end_time"]:
            if item.get(field):
                item[field] = item[field][:5]
        if item.get("created_at"):
            item["created_at"] = parse_iso_datetime(item["created_at"])
        return WorkingHoursSlot(**item)

    def _parse_booking(self, item: dict) -> Booking:
        """
        Parse booking data from database response.

        Args:
            item: Raw booking data from database

        Returns:
            Parsed Booking object
        """
        item = item.copy()
        if item.get("scheduled_time"):
            item["scheduled_time"] = item["scheduled_time"][:5]
        for field in ["created_at", "updated_at", "reminder_sent_at"]:
            if item.get(field):
                item[field] = parse_iso_datetime(item[field])
        return Booking(**item)


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
