"""
Unit tests for Supabase database client.
Tests with mocked Supabase API calls.
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from postgrest.exceptions import APIError

from db.supabase_client import SupabaseClient
from models.availability import WorkingHoursCreate
from models.booking import Booking, BookingStatus
from utils.exceptions import DatabaseError, SlotConflictError


@pytest.fixture
def supabase_client(mock_supabase_client):
    """Create SupabaseClient with mocked client."""
    mock_client, _ = mock_supabase_client
    with patch("db.supabase_client.create_client", return_value=mock_client):
        client = SupabaseClient()
        client.client = mock_client
        return client


def response(data, count=None):
    mock_response = MagicMock()
    mock_response.data = data
    mock_response.count = count
    return mock_response


BOOKING_ROW = {
    "id": "booking_1",
    "provider_id": "provider_1",
    "client_id": "client_1",
    "service_id": "service_1",
    "worker_id": None,
    "scheduled_date": "2026-01-19",
    "scheduled_time": "10:00:00",
    "duration_minutes": 60,
    "status": "PENDING",
    "client_notes": None,
    "provider_notes": None,
    "created_at": "2026-01-16T12:00:00Z",
    "updated_at": "2026-01-16T12:00:00+00:00",
}


@pytest.mark.asyncio
async def test_get_user_found_and_cached(supabase_client, mock_supabase_client):
    """Second lookup is served from cache."""
    _, mock_table = mock_supabase_client
    mock_table.select.return_value.eq.return_value.execute.return_value = response(
        [{"id": "client_1", "email": "ana@example.com", "first_name": "Ana", "role": "CLIENT"}]
    )

    first = await supabase_client.get_user("client_1")
    second = await supabase_client.get_user("client_1")

    assert first.first_name == "Ana"
    assert second is first
    assert mock_table.select.return_value.eq.return_value.execute.call_count == 1


@pytest.mark.asyncio
async def test_get_user_not_found(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.select.return_value.eq.return_value.execute.return_value = response([])

    assert await supabase_client.get_user("missing") is None


@pytest.mark.asyncio
async def test_get_user_wraps_errors(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.select.return_value.eq.return_value.execute.side_effect = Exception("boom")

    with pytest.raises(DatabaseError):
        await supabase_client.get_user("client_1")


@pytest.mark.asyncio
async def test_get_working_hours_trims_seconds(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    chain = mock_table.select.return_value.eq.return_value.eq.return_value.eq.return_value
    chain.order.return_value.execute.return_value = response(
        [
            {
                "id": "wh_1",
                "user_id": "provider_1",
                "day_of_week": 1,
                "start_time": "09:00:00",
                "end_time": "12:00:00",
                "is_active": True,
            }
        ]
    )

    windows = await supabase_client.get_working_hours("provider_1", 1)

    assert len(windows) == 1
    assert (windows[0].start_time, windows[0].end_time) == ("09:00", "12:00")
    mock_supabase_client[0].table.assert_called_with("working_hours")


@pytest.mark.asyncio
async def test_get_occupied_intervals_filters_occupying(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    chain = mock_table.select.return_value.eq.return_value.eq.return_value
    chain.in_.return_value.execute.return_value = response(
        [{"scheduled_time": "10:00:00", "duration_minutes": 60}]
    )

    intervals = await supabase_client.get_occupied_intervals("provider_1", date(2026, 1, 19))

    assert intervals[0].start_minutes == 600
    assert intervals[0].end_minutes == 660
    column, statuses = chain.in_.call_args.args
    assert column == "status"
    assert set(statuses) == {"PENDING", "CONFIRMED"}


@pytest.mark.asyncio
async def test_create_booking_success(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.insert.return_value.execute.return_value = response([BOOKING_ROW])

    booking = Booking(**{**BOOKING_ROW, "id": None, "scheduled_time": "10:00"})
    created = await supabase_client.create_booking(booking)

    assert created.id == "booking_1"
    assert created.scheduled_time == "10:00"
    payload = mock_table.insert.call_args.args[0]
    assert payload["scheduled_date"] == "2026-01-19"
    assert payload["status"] == "PENDING"
    assert "id" not in payload


@pytest.mark.asyncio
async def test_create_booking_unique_violation_is_conflict(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.insert.return_value.execute.side_effect = APIError(
        {
            "message": 'duplicate key value violates unique constraint "bookings_active_slot_unique"',
            "code": "23505",
            "hint": None,
            "details": None,
        }
    )

    booking = Booking(**{**BOOKING_ROW, "id": None, "scheduled_time": "10:00"})
    with pytest.raises(SlotConflictError):
        await supabase_client.create_booking(booking)


@pytest.mark.asyncio
async def test_create_booking_other_api_error(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.insert.return_value.execute.side_effect = APIError(
        {"message": "foreign key violation", "code": "23503", "hint": None, "details": None}
    )

    booking = Booking(**{**BOOKING_ROW, "id": None, "scheduled_time": "10:00"})
    with pytest.raises(DatabaseError):
        await supabase_client.create_booking(booking)


@pytest.mark.asyncio
async def test_count_active_bookings(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    chain = mock_table.select.return_value.eq.return_value.in_.return_value
    chain.execute.return_value = response([], count=4)

    assert await supabase_client.count_active_bookings("client_1") == 4
    mock_table.select.assert_called_with("id", count="exact")


@pytest.mark.asyncio
async def test_update_booking_status_guards_on_expected(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    first_eq = mock_table.update.return_value.eq
    first_eq.return_value.eq.return_value.execute.return_value = response(
        [{**BOOKING_ROW, "status": "CONFIRMED"}]
    )

    updated = await supabase_client.update_booking_status(
        "booking_1", BookingStatus.CONFIRMED, expected_status=BookingStatus.PENDING
    )

    assert updated.status == BookingStatus.CONFIRMED
    first_eq.return_value.eq.assert_called_with("status", "PENDING")
    assert mock_table.update.call_args.args[0]["status"] == "CONFIRMED"


@pytest.mark.asyncio
async def test_update_booking_status_no_match(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.update.return_value.eq.return_value.eq.return_value.execute.return_value = response([])

    result = await supabase_client.update_booking_status(
        "booking_1", BookingStatus.CONFIRMED, expected_status=BookingStatus.PENDING
    )

    assert result is None


@pytest.mark.asyncio
async def test_register_late_cancellation_rpc(supabase_client, mock_supabase_client):
    mock_client, _ = mock_supabase_client
    mock_client.rpc.return_value.execute.return_value = response(
        [
            {
                "cancellation_strikes": 0,
                "banned_until": "2026-01-23T12:00:00+00:00",
                "suspended": True,
            }
        ]
    )

    outcome = await supabase_client.register_late_cancellation("client_1", 3, 7)

    assert outcome.suspended
    assert outcome.strikes == 0
    assert outcome.banned_until.day == 23
    mock_client.rpc.assert_called_once_with(
        "register_late_cancellation",
        {"p_user_id": "client_1", "p_threshold": 3, "p_ban_days": 7},
    )


@pytest.mark.asyncio
async def test_register_late_cancellation_invalidates_user_cache(
    supabase_client, mock_supabase_client
):
    mock_client, _ = mock_supabase_client
    supabase_client._set_cache("user:client_1", "stale")
    mock_client.rpc.return_value.execute.return_value = response(
        [{"cancellation_strikes": 1, "banned_until": None, "suspended": False}]
    )

    outcome = await supabase_client.register_late_cancellation("client_1")

    assert outcome.strikes == 1
    assert supabase_client._get_from_cache("user:client_1") is None


@pytest.mark.asyncio
async def test_create_working_hours(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.insert.return_value.execute.return_value = response(
        [
            {
                "id": "wh_1",
                "user_id": "provider_1",
                "day_of_week": 2,
                "start_time": "08:00:00",
                "end_time": "16:00:00",
                "is_active": True,
            }
        ]
    )

    created = await supabase_client.create_working_hours(
        "provider_1", WorkingHoursCreate(day_of_week=2, start_time="08:00", end_time="16:00")
    )

    assert created.id == "wh_1"
    assert mock_table.insert.call_args.args[0]["user_id"] == "provider_1"


@pytest.mark.asyncio
async def test_get_bookings_for_date(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    chain = mock_table.select.return_value.eq.return_value.eq.return_value.order.return_value
    chain.execute.return_value = response([{**BOOKING_ROW, "status": "CONFIRMED"}])

    bookings = await supabase_client.get_bookings_for_date(date(2026, 1, 19))

    assert [b.status for b in bookings] == [BookingStatus.CONFIRMED]
    mock_table.select.return_value.eq.assert_called_with("scheduled_date", "2026-01-19")


@pytest.mark.asyncio
async def test_get_bookings_for_date_skips_reminded(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    status_eq = mock_table.select.return_value.eq.return_value.eq.return_value
    status_eq.is_.return_value.order.return_value.execute.return_value = response(
        [{**BOOKING_ROW, "status": "CONFIRMED"}]
    )

    bookings = await supabase_client.get_bookings_for_date(
        date(2026, 1, 19), BookingStatus.CONFIRMED, unreminded_only=True
    )

    assert len(bookings) == 1
    status_eq.is_.assert_called_once_with("reminder_sent_at", "null")


@pytest.mark.asyncio
async def test_mark_reminder_sent(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.update.return_value.eq.return_value.execute.return_value = response(
        [{**BOOKING_ROW, "status": "CONFIRMED", "reminder_sent_at": "2026-01-18T08:00:00+00:00"}]
    )

    booking = await supabase_client.mark_reminder_sent("booking_1")

    assert booking.reminder_sent_at is not None
    assert "reminder_sent_at" in mock_table.update.call_args.args[0]
    mock_table.update.return_value.eq.assert_called_with("id", "booking_1")


@pytest.mark.asyncio
async def test_mark_reminder_sent_error(supabase_client, mock_supabase_client):
    _, mock_table = mock_supabase_client
    mock_table.update.return_value.eq.return_value.execute.side_effect = Exception("boom")

    with pytest.raises(DatabaseError):
        await supabase_client.mark_reminder_sent("booking_1")
