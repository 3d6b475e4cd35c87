"""
Scheduler for appointment reminders using APScheduler.
Emails clients the day before each CONFIRMED booking.

Supports Redis backend for horizontal scaling (multiple API instances).
"""

from datetime import datetime
from typing import Dict, Optional
from urllib.parse import urlparse

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

# Redis jobstore is optional - only import if Redis is configured
try:
    from apscheduler.jobstores.redis import RedisJobStore

    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    RedisJobStore = None

from config import settings
from db import get_db_client
from models.booking import BookingStatus
from notifications import get_notifier
from utils.datetime_utils import add_days, local_today
from utils.exceptions import DatabaseError
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="scheduler.log", log_dir="logs"
)

REMINDER_JOB_ID = "send_reminders"


def _redis_jobstore_options(redis_url: str) -> Dict:
    """Split ``redis://[:password@]host[:port][/db]`` into RedisJobStore kwargs."""
    parsed = urlparse(redis_url)
    db_path = parsed.path.lstrip("/")
    return {
        "host": parsed.hostname or "localhost",
        "port": parsed.port or 6379,
        "db": int(db_path) if db_path else 0,
        "password": parsed.password,
    }


def _create_scheduler() -> AsyncIOScheduler:
    """Build the reminder scheduler in the marketplace timezone.

    Jobs persist in Redis when ``REDIS_URL`` is set so several API
    instances share one reminder schedule; otherwise they live in memory.
    """
    redis_url = settings.redis_url

    if redis_url and not REDIS_AVAILABLE:
        logger.warning("REDIS_URL is set but the redis extra is not installed")
    elif redis_url:
        try:
            options = _redis_jobstore_options(redis_url)
            scheduler = AsyncIOScheduler(
                jobstores={"default": RedisJobStore(**options)},
                timezone=settings.timezone,
            )
            logger.info(
                f"Reminder jobs stored in Redis at {options['host']}:{options['port']}/{options['db']}"
            )
            return scheduler
        except Exception as e:
            logger.warning(f"Redis job store unavailable ({e}), keeping jobs in memory")

    logger.info("Reminder jobs stored in memory")
    return AsyncIOScheduler(timezone=settings.timezone)


scheduler = _create_scheduler()


async def send_reminders(
    db=None, notifier=None, now: Optional[datetime] = None
) -> Dict[str, int]:
    """
    Email every client with a CONFIRMED booking tomorrow (provider timezone).

    Each booking is reminded once: after a successful send it is marked, and
    marked bookings are skipped on later runs.

    Returns:
        Counts ``{"total", "successful", "failed"}``

    Raises:
        DatabaseError: If the bookings cannot be loaded
    """
    db = db or get_db_client()
    notifier = notifier or get_notifier()

    tomorrow = add_days(local_today(settings.timezone, now), 1)
    bookings = await db.get_bookings_for_date(
        tomorrow, BookingStatus.CONFIRMED, unreminded_only=True
    )

    if not bookings:
        logger.debug(f"No confirmed bookings on {tomorrow}, nothing to remind")
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info(f"Processing {len(bookings)} reminders for {tomorrow}")

    # Batch fetch users and services to avoid N+1 queries
    user_ids = list(
        {b.client_id for b in bookings} | {b.provider_id for b in bookings}
    )
    users = await db.get_users_by_ids(user_ids)

    services = {}
    for service_id in {b.service_id for b in bookings}:
        services[service_id] = await db.get_service(service_id)

    successful = 0
    failed = 0

    for booking in bookings:
        client = users.get(booking.client_id)
        if not client:
            logger.warning(
                f"Client {booking.client_id} not found for booking {booking.id}"
            )
            failed += 1
            continue

        provider = users.get(booking.provider_id)
        service = services.get(booking.service_id)
        payload = {
            "booking_id": booking.id,
            "service_name": service.name if service else "your service",
            "provider_name": provider.display_name if provider else "your provider",
            "date": booking.scheduled_date.isoformat(),
            "time": booking.scheduled_time,
        }

        if not await notifier.notify("booking_reminder", client, payload):
            failed += 1
            continue

        successful += 1
        try:
            await db.mark_reminder_sent(booking.id)
        except DatabaseError as e:
            logger.warning(f"Reminder for booking {booking.id} sent but not recorded: {e}")

    logger.info(
        f"Reminder processing complete: {successful} sent, {failed} failed"
    )
    return {"total": len(bookings), "successful": successful, "failed": failed}


async def run_reminder_job() -> None:
    """Scheduled entry point; logs instead of raising."""
    try:
        await send_reminders()
    except DatabaseError as e:
        logger.error(f"Database error sending reminders: {e}", exc_info=True)
    except Exception as e:
        logger.error(f"Unexpected error sending reminders: {e}", exc_info=True)


def setup_scheduler(hour: int = 9) -> None:
    """Register the daily reminder job and start the scheduler."""
    scheduler.add_job(
        run_reminder_job,
        trigger=CronTrigger(hour=hour, minute=0, timezone=settings.timezone),
        id=REMINDER_JOB_ID,
        name="Send reminders for tomorrow's bookings",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler():
    """Shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
    logger.info("Scheduler stopped")
