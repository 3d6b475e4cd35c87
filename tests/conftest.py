"""
Pytest configuration and shared fixtures.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config import Settings
from models.availability import OccupiedInterval, WorkingHoursSlot
from models.booking import Booking, BookingStatus
from models.service import Service
from models.user import User, UserRole

# 2026-01-19 is a Monday
MONDAY = date(2026, 1, 19)
TUESDAY = date(2026, 1, 20)
SUNDAY = date(2026, 1, 18)

# Midday UTC the Friday before
NOW = datetime(2026, 1, 16, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def mock_settings():
    """Test settings for code that reads ``config.settings`` at call time."""
    test_settings = Settings(
        _env_file=None,
        supabase_url="https://test.supabase.co",
        supabase_key="test_key",
        resend_api_key=None,
        cron_secret=None,
        timezone="Europe/Belgrade",
        environment="test",
        redis_url=None,
        admin_user_ids="",
    )
    with patch("config.settings", test_settings):
        yield test_settings


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


def _make_window(day_of_week=1, start="09:00", end="12:00", is_active=True, **kwargs):
    return WorkingHoursSlot(
        user_id=kwargs.pop("user_id", "provider_1"),
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_active=is_active,
        **kwargs,
    )


def _make_booking(
    status=BookingStatus.PENDING,
    scheduled_date=MONDAY,
    scheduled_time="10:00",
    duration_minutes=60,
    **kwargs,
):
    data = {
        "id": "booking_1",
        "provider_id": "provider_1",
        "client_id": "client_1",
        "service_id": "service_1",
    }
    data.update(kwargs)
    return Booking(
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        duration_minutes=duration_minutes,
        status=status,
        **data,
    )


@pytest.fixture
def make_window():
    """Factory for working-hours windows (provider_1, Monday 09:00-12:00 by default)."""
    return _make_window


@pytest.fixture
def make_booking():
    """Factory for bookings between client_1 and provider_1."""
    return _make_booking


@pytest.fixture
def client_user():
    return User(id="client_1", email="klijent@example.com", first_name="Ana", role=UserRole.CLIENT)


@pytest.fixture
def provider_user():
    return User(
        id="provider_1",
        email="frizer@example.com",
        first_name="Marko",
        last_name="Marković",
        role=UserRole.FREELANCER,
    )


@pytest.fixture
def admin_user():
    return User(id="admin_1", email="admin@example.com", first_name="Admin", role=UserRole.ADMIN)


@pytest.fixture
def stranger_user():
    return User(id="stranger_1", email="drugi@example.com", first_name="Ivan", role=UserRole.CLIENT)


@pytest.fixture
def service():
    return Service(
        id="service_1",
        provider_id="provider_1",
        name="Šišanje",
        price=1500,
        duration_minutes=60,
        is_active=True,
    )


@pytest.fixture
def fake_db(service, client_user, provider_user):
    """Async datastore double with one provider working Monday 09:00-12:00."""
    db = MagicMock()
    db.get_working_hours = AsyncMock(return_value=[_make_window()])
    db.get_occupied_intervals = AsyncMock(return_value=[])
    db.get_service = AsyncMock(return_value=service)
    db.count_active_bookings = AsyncMock(return_value=0)
    db.get_company_worker = AsyncMock(return_value=None)
    db.create_booking = AsyncMock(
        side_effect=lambda booking: booking.model_copy(update={"id": "booking_new"})
    )
    db.get_booking_by_id = AsyncMock(return_value=None)
    db.update_booking_status = AsyncMock()
    db.delete_booking = AsyncMock(return_value=True)
    db.get_bookings_for_user = AsyncMock(return_value=[])
    db.register_late_cancellation = AsyncMock()
    db.mark_reminder_sent = AsyncMock()
    db.get_user = AsyncMock(
        side_effect=lambda user_id: {
            client_user.id: client_user,
            provider_user.id: provider_user,
        }.get(user_id)
    )
    db.get_users_by_ids = AsyncMock(
        return_value={client_user.id: client_user, provider_user.id: provider_user}
    )
    return db


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.notify = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def occupied_10_to_11():
    return [OccupiedInterval(start_time="10:00", duration_minutes=60)]
