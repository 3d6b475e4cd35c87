"""
HTTP API for the booking core (aiohttp).

Endpoints:
- GET    /api/calendar/availability        bookable slots for a provider/date
- GET    /api/calendar/working-hours       provider's windows grouped by weekday
- POST   /api/calendar/working-hours       add a window
- DELETE /api/calendar/working-hours/{id}  remove a window
- GET    /api/bookings                     current user's bookings
- POST   /api/bookings                     create a booking
- GET    /api/bookings/{id}                one booking
- PATCH  /api/bookings/{id}                status change
- DELETE /api/bookings/{id}                delete a cancelled/rejected booking
- POST   /api/cron/send-reminders          run the reminder job
- GET    /health

Authentication is handled upstream; the gateway forwards the user ID in the
``X-User-Id`` header. Every response uses the envelope
``{success, data?, message?, error?, errors?}``.
"""

import re
import time
from typing import Any, Dict, Optional

from aiohttp import web
from aiohttp.web import Request, Response
from pydantic import ValidationError as PydanticValidationError

from config import settings
from models.availability import WorkingHoursCreate
from models.booking import BookingCreate, BookingStatus, BookingStatusUpdate
from scheduling import working_hours
from scheduling.availability import AvailabilityResolver
from scheduling.booking_service import BookingService
from scheduler.reminders import send_reminders
from utils.datetime_utils import parse_iso_date
from utils.exceptions import (
    BookingError,
    DatabaseError,
    InvalidInputError,
    ValidationError,
)
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="api.log", log_dir="logs")

# Constants
MAX_REQUEST_BODY_SIZE = 1024 * 1024  # 1MB
USER_HEADER = "X-User-Id"
PUBLIC_PATHS = frozenset({"/health", "/api/calendar/availability"})
CRON_PREFIX = "/api/cron/"

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

_start_time = time.time()


# ========== Envelope helpers ==========


def success_response(
    data: Any = None, message: Optional[str] = None, status: int = 200
) -> Response:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return web.json_response(body, status=status)


def error_response(
    error: str,
    status: int = 400,
    reason: Optional[str] = None,
    errors: Optional[Dict[str, list]] = None,
) -> Response:
    body: Dict[str, Any] = {"success": False, "error": error}
    if reason:
        body["reason"] = reason
    if errors:
        body["errors"] = errors
    return web.json_response(body, status=status)


def _validation_errors(exc: PydanticValidationError) -> Dict[str, list]:
    """Group pydantic errors by field path."""
    errors: Dict[str, list] = {}
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ())) or "body"
        errors.setdefault(path, []).append(err.get("msg", "Invalid value"))
    return errors


def _snake_keys(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Accept camelCase request bodies (``serviceId`` -> ``service_id``)."""
    return {_CAMEL_RE.sub("_", key).lower(): value for key, value in payload.items()}


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return _snake_keys(payload)


def _service(request: Request) -> BookingService:
    return request.app["booking_service"]


# ========== Middleware ==========


@web.middleware
async def security_headers_middleware(request: Request, handler):
    """Add security headers to all responses."""
    response = await handler(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = (
        "max-age=31536000; includeSubDomains"
    )
    return response


@web.middleware
async def error_middleware(request: Request, handler):
    """Map domain and validation errors to the JSON envelope."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except BookingError as e:
        logger.info(f"{request.method} {request.path} refused: {e.reason}: {e.message}")
        return error_response(e.message, status=e.status_code, reason=e.reason)
    except PydanticValidationError as e:
        return error_response(
            "Validation error", status=422, errors=_validation_errors(e)
        )
    except ValidationError as e:
        return error_response(str(e), status=400, reason="InvalidInput")
    except DatabaseError as e:
        logger.error(f"Database error on {request.method} {request.path}: {e}", exc_info=True)
        return error_response("Internal server error", status=500)
    except Exception as e:
        logger.error(
            f"Unexpected error on {request.method} {request.path}: {e}", exc_info=True
        )
        return error_response("Internal server error", status=500)


@web.middleware
async def auth_middleware(request: Request, handler):
    """Load the calling user from the ``X-User-Id`` header."""
    if request.path in PUBLIC_PATHS or request.path.startswith(CRON_PREFIX):
        return await handler(request)

    user_id = request.headers.get(USER_HEADER, "").strip()
    if not user_id:
        return error_response("Authentication required", status=401)

    user = await request.app["db"].get_user(user_id)
    if user is None:
        return error_response("Authentication required", status=401)

    request["user"] = user
    return await handler(request)


# ========== Calendar ==========


async def availability_handler(request: Request) -> Response:
    provider_id = request.query.get("providerId", "").strip()
    date_str = request.query.get("date", "").strip()
    if not provider_id or not date_str:
        raise InvalidInputError("providerId and date are required")

    try:
        target_date = parse_iso_date(date_str)
    except ValueError as e:
        raise InvalidInputError(f"Invalid date: {date_str}") from e

    raw_duration = request.query.get("duration")
    if raw_duration is None or raw_duration == "":
        duration = settings.default_service_duration_minutes
    else:
        try:
            duration = int(raw_duration)
        except ValueError as e:
            raise InvalidInputError(f"Invalid duration: {raw_duration}") from e

    resolver: AvailabilityResolver = request.app["resolver"]
    result = await resolver.get_day_availability(provider_id, target_date, duration)
    return success_response(result.to_response())


async def list_working_hours_handler(request: Request) -> Response:
    grouped = await working_hours.list_grouped(request.app["db"], request["user"])
    data = [
        {**day, "slots": [w.model_dump(mode="json") for w in day["slots"]]}
        for day in grouped
    ]
    return success_response(data)


async def create_working_hours_handler(request: Request) -> Response:
    data = WorkingHoursCreate(**await _read_json(request))
    created = await working_hours.add_window(request.app["db"], request["user"], data)
    return success_response(
        created.model_dump(mode="json"), message="Working hours added", status=201
    )


async def delete_working_hours_handler(request: Request) -> Response:
    await working_hours.remove_window(
        request.app["db"], request["user"], request.match_info["id"]
    )
    return success_response(None, message="Working hours deleted")


# ========== Bookings ==========


async def list_bookings_handler(request: Request) -> Response:
    status = None
    raw_status = request.query.get("status")
    if raw_status:
        try:
            status = BookingStatus(raw_status.upper())
        except ValueError as e:
            raise InvalidInputError(f"Unknown status: {raw_status}") from e

    bookings = await _service(request).list_bookings(request["user"], status)
    return success_response([b.model_dump(mode="json") for b in bookings])


async def create_booking_handler(request: Request) -> Response:
    data = BookingCreate(**await _read_json(request))
    booking = await _service(request).create_booking(request["user"], data)
    return success_response(
        booking.model_dump(mode="json"),
        message="Booking created. Waiting for the provider to confirm.",
        status=201,
    )


async def get_booking_handler(request: Request) -> Response:
    booking = await _service(request).get_booking(
        request["user"], request.match_info["id"]
    )
    return success_response(booking.model_dump(mode="json"))


async def update_booking_handler(request: Request) -> Response:
    update = BookingStatusUpdate(**await _read_json(request))
    change = await _service(request).update_status(
        request["user"], request.match_info["id"], update
    )

    data = change.booking.model_dump(mode="json")
    if change.strikes is not None:
        data["lateCancellation"] = {
            "strikes": change.strikes.strikes,
            "suspended": change.strikes.suspended,
            "bannedUntil": (
                change.strikes.banned_until.isoformat()
                if change.strikes.banned_until
                else None
            ),
        }
    return success_response(data, message=change.message)


async def delete_booking_handler(request: Request) -> Response:
    await _service(request).delete_booking(request["user"], request.match_info["id"])
    return success_response(None, message="Booking deleted")


# ========== Cron & health ==========


async def send_reminders_handler(request: Request) -> Response:
    if settings.cron_secret:
        expected = f"Bearer {settings.cron_secret}"
        if request.headers.get("Authorization") != expected:
            return error_response("Unauthorized", status=401)

    counts = await send_reminders(
        db=request.app["db"], notifier=request.app["notifier"]
    )
    return success_response(counts, message=f"Sent {counts['successful']} reminders")


async def health_check(request: Request) -> Response:
    """Liveness probe."""
    return web.json_response(
        {
            "status": "ok",
            "service": "booking-core",
            "environment": settings.environment,
            "timestamp": time.time(),
            "uptime_hours": round((time.time() - _start_time) / 3600, 2),
        }
    )


def create_app(db=None, notifier=None) -> web.Application:
    """
    Create aiohttp application with middleware and routes.

    Args:
        db: Datastore client (defaults to the process-wide Supabase client)
        notifier: Notification sink (defaults to the email notifier)
    """
    if db is None:
        from db import get_db_client

        db = get_db_client()
    if notifier is None:
        from notifications import get_notifier

        notifier = get_notifier()

    app = web.Application(
        middlewares=[security_headers_middleware, error_middleware, auth_middleware],
        client_max_size=MAX_REQUEST_BODY_SIZE,
    )

    resolver = AvailabilityResolver(db)
    app["db"] = db
    app["notifier"] = notifier
    app["resolver"] = resolver
    app["booking_service"] = BookingService(db, notifier, resolver=resolver)

    app.router.add_get("/health", health_check)
    app.router.add_get("/api/calendar/availability", availability_handler)
    app.router.add_get("/api/calendar/working-hours", list_working_hours_handler)
    app.router.add_post("/api/calendar/working-hours", create_working_hours_handler)
    app.router.add_delete(
        "/api/calendar/working-hours/{id}", delete_working_hours_handler
    )
    app.router.add_get("/api/bookings", list_bookings_handler)
    app.router.add_post("/api/bookings", create_booking_handler)
    app.router.add_get("/api/bookings/{id}", get_booking_handler)
    app.router.add_patch("/api/bookings/{id}", update_booking_handler)
    app.router.add_delete("/api/bookings/{id}", delete_booking_handler)
    app.router.add_post("/api/cron/send-reminders", send_reminders_handler)

    return app


async def _on_startup(app: web.Application) -> None:
    from scheduler import setup_scheduler

    setup_scheduler()


async def _on_cleanup(app: web.Application) -> None:
    from scheduler import shutdown_scheduler

    shutdown_scheduler()


def main() -> None:
    """Validate configuration and run the API with the reminder scheduler."""
    settings.validate_all_required()

    app = create_app()
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)

    logger.info(f"Starting booking API on {settings.host}:{settings.port}")
    web.run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
