"""
Unit tests for the HTTP API.
The datastore and notifier are mocked; requests go through the real app.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from aiohttp import test_utils
from aiohttp.test_utils import make_mocked_request

from api import create_app, health_check
from models.booking import BookingStatus
from utils.exceptions import DatabaseError

# A Monday far enough ahead to never be in the past
FUTURE_MONDAY = "2030-01-07"

CLIENT = {"X-User-Id": "client_1"}
PROVIDER = {"X-User-Id": "provider_1"}


@pytest.fixture
def app(fake_db, notifier):
    """Create test application."""
    fake_db.list_working_hours = AsyncMock(return_value=[])
    return create_app(db=fake_db, notifier=notifier)


@pytest_asyncio.fixture
async def api_client(app):
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        yield client


class TestHealthCheck:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self):
        request = make_mocked_request("GET", "/health")
        response = await health_check(request)

        assert response.status == 200
        assert json.loads(response.text)["status"] == "ok"


class TestAvailability:
    @pytest.mark.asyncio
    async def test_monday_example(self, api_client, fake_db, occupied_10_to_11):
        fake_db.get_occupied_intervals.return_value = occupied_10_to_11

        resp = await api_client.get(
            "/api/calendar/availability",
            params={"providerId": "provider_1", "date": FUTURE_MONDAY, "duration": "60"},
        )
        body = await resp.json()

        assert resp.status == 200
        assert body["success"] is True
        assert body["data"]["availableSlots"] == ["09:00", "11:00"]
        assert body["data"]["dayName"] == "Ponedeljak"
        assert body["data"]["workingHours"] == [{"startTime": "09:00", "endTime": "12:00"}]
        assert "message" not in body["data"]

    @pytest.mark.asyncio
    async def test_duration_defaults_to_sixty(self, api_client):
        resp = await api_client.get(
            "/api/calendar/availability",
            params={"providerId": "provider_1", "date": FUTURE_MONDAY},
        )
        body = await resp.json()

        assert body["data"]["availableSlots"][-1] == "11:00"

    @pytest.mark.asyncio
    async def test_non_working_day_message(self, api_client, fake_db):
        fake_db.get_working_hours.return_value = []

        resp = await api_client.get(
            "/api/calendar/availability",
            params={"providerId": "provider_1", "date": "2030-01-06"},
        )
        body = await resp.json()

        assert resp.status == 200
        assert body["data"]["availableSlots"] == []
        assert body["data"]["message"] == "Provider does not work on this day"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params",
        [
            {"date": FUTURE_MONDAY},
            {"providerId": "provider_1"},
            {"providerId": "provider_1", "date": "19-01-2030"},
            {"providerId": "provider_1", "date": "2030-01-07garbage"},
            {"providerId": "provider_1", "date": FUTURE_MONDAY, "duration": "abc"},
            {"providerId": "provider_1", "date": FUTURE_MONDAY, "duration": "-30"},
        ],
    )
    async def test_invalid_input(self, api_client, params):
        resp = await api_client.get("/api/calendar/availability", params=params)
        body = await resp.json()

        assert resp.status == 400
        assert body["success"] is False
        assert body["reason"] == "InvalidInput"


class TestBookings:
    @pytest.mark.asyncio
    async def test_requires_identity(self, api_client, fake_db):
        resp = await api_client.get("/api/bookings")
        assert resp.status == 401

        resp = await api_client.get("/api/bookings", headers={"X-User-Id": "ghost"})
        assert resp.status == 401

    @pytest.mark.asyncio
    async def test_create_booking(self, api_client, fake_db):
        resp = await api_client.post(
            "/api/bookings",
            json={
                "serviceId": "service_1",
                "scheduledDate": FUTURE_MONDAY,
                "scheduledTime": "09:00",
                "clientNotes": "Prvi put",
            },
            headers=CLIENT,
        )
        body = await resp.json()

        assert resp.status == 201
        assert body["data"]["status"] == "PENDING"
        assert body["data"]["scheduled_time"] == "09:00"
        fake_db.create_booking.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_create_booking_conflict(self, api_client, fake_db, occupied_10_to_11):
        fake_db.get_occupied_intervals.return_value = occupied_10_to_11

        resp = await api_client.post(
            "/api/bookings",
            json={"serviceId": "service_1", "scheduledDate": FUTURE_MONDAY, "scheduledTime": "09:30"},
            headers=CLIENT,
        )
        body = await resp.json()

        assert resp.status == 409
        assert body["reason"] == "SlotConflict"

    @pytest.mark.asyncio
    async def test_create_booking_outside_hours(self, api_client):
        resp = await api_client.post(
            "/api/bookings",
            json={"serviceId": "service_1", "scheduledDate": FUTURE_MONDAY, "scheduledTime": "17:00"},
            headers=CLIENT,
        )
        body = await resp.json()

        assert resp.status == 400
        assert body["reason"] == "OutsideWorkingHours"

    @pytest.mark.asyncio
    async def test_create_booking_validation_errors(self, api_client):
        resp = await api_client.post(
            "/api/bookings",
            json={"serviceId": "service_1", "scheduledDate": FUTURE_MONDAY, "scheduledTime": "9"},
            headers=CLIENT,
        )
        body = await resp.json()

        assert resp.status == 422
        assert "scheduled_time" in body["errors"]

    @pytest.mark.asyncio
    async def test_create_booking_rejects_non_json(self, api_client):
        resp = await api_client.post("/api/bookings", data="not json", headers=CLIENT)
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_provider_confirms(self, api_client, fake_db, make_booking):
        fake_db.get_booking_by_id.return_value = make_booking()
        fake_db.update_booking_status.return_value = make_booking(status=BookingStatus.CONFIRMED)

        resp = await api_client.patch(
            "/api/bookings/booking_1", json={"status": "CONFIRMED"}, headers=PROVIDER
        )
        body = await resp.json()

        assert resp.status == 200
        assert body["message"] == "Booking confirmed"
        assert body["data"]["status"] == "CONFIRMED"

    @pytest.mark.asyncio
    async def test_client_cannot_confirm(self, api_client, fake_db, make_booking):
        fake_db.get_booking_by_id.return_value = make_booking()

        resp = await api_client.patch(
            "/api/bookings/booking_1", json={"status": "CONFIRMED"}, headers=CLIENT
        )

        assert resp.status == 403
        fake_db.update_booking_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_missing_booking(self, api_client):
        resp = await api_client.get("/api/bookings/nope", headers=CLIENT)
        assert resp.status == 404

    @pytest.mark.asyncio
    async def test_list_with_unknown_status(self, api_client):
        resp = await api_client.get("/api/bookings", params={"status": "LOST"}, headers=CLIENT)
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_delete_cancelled_booking(self, api_client, fake_db, make_booking):
        fake_db.get_booking_by_id.return_value = make_booking(status=BookingStatus.CANCELLED)

        resp = await api_client.delete("/api/bookings/booking_1", headers=CLIENT)

        assert resp.status == 200
        fake_db.delete_booking.assert_awaited_once_with("booking_1")

    @pytest.mark.asyncio
    async def test_database_error_is_500(self, api_client, fake_db):
        fake_db.get_bookings_for_user.side_effect = DatabaseError("timeout")

        resp = await api_client.get("/api/bookings", headers=CLIENT)
        body = await resp.json()

        assert resp.status == 500
        assert body["error"] == "Internal server error"


class TestWorkingHours:
    @pytest.mark.asyncio
    async def test_grouped_list(self, api_client):
        resp = await api_client.get("/api/calendar/working-hours", headers=PROVIDER)
        body = await resp.json()

        assert resp.status == 200
        assert len(body["data"]) == 7

    @pytest.mark.asyncio
    async def test_clients_cannot_manage(self, api_client):
        resp = await api_client.get("/api/calendar/working-hours", headers=CLIENT)
        assert resp.status == 403

    @pytest.mark.asyncio
    async def test_overlapping_window_rejected(self, api_client):
        resp = await api_client.post(
            "/api/calendar/working-hours",
            json={"dayOfWeek": 1, "startTime": "11:00", "endTime": "14:00"},
            headers=PROVIDER,
        )
        body = await resp.json()

        assert resp.status == 400
        assert body["reason"] == "WorkingHoursOverlap"


class TestCron:
    @pytest.mark.asyncio
    async def test_secret_required(self, api_client):
        with patch("api.settings") as api_settings:
            api_settings.cron_secret = "s3cret"
            resp = await api_client.post("/api/cron/send-reminders")

        assert resp.status == 401

    @pytest.mark.asyncio
    async def test_runs_reminders(self, api_client):
        counts = {"total": 1, "successful": 1, "failed": 0}
        with patch("api.settings") as api_settings, patch(
            "api.send_reminders", AsyncMock(return_value=counts)
        ):
            api_settings.cron_secret = "s3cret"
            resp = await api_client.post(
                "/api/cron/send-reminders", headers={"Authorization": "Bearer s3cret"}
            )
        body = await resp.json()

        assert resp.status == 200
        assert body["data"] == counts


class TestApp:
    def test_routes_registered(self, app):
        routes = {route.resource.canonical for route in app.router.routes()}
        assert "/api/calendar/availability" in routes
        assert "/api/bookings/{id}" in routes
        assert "/api/cron/send-reminders" in routes
        assert "/health" in routes
