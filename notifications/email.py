"""
Email notifications via Resend.

The booking workflow treats notification as fire-and-forget: ``notify`` logs
every failure and returns False, it never raises into the caller.
"""

import asyncio
from typing import Optional

import resend

from config import settings
from models.user import User
from notifications.templates import TEMPLATES, render
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level="INFO", log_file="notifications.log", log_dir="logs"
)


class EmailNotifier:
    """Sends booking event emails through Resend with bounded retries."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.sender = sender or settings.email_from
        self.base_url = (base_url or settings.app_base_url).rstrip("/")
        self.max_retries = (
            max_retries if max_retries is not None else settings.email_max_retries
        )
        self.retry_delay = (
            retry_delay if retry_delay is not None else settings.email_retry_delay
        )

        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        if self.api_key:
            resend.api_key = self.api_key

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _booking_url(self, payload: dict) -> str:
        booking_id = payload.get("booking_id")
        if not booking_id:
            return ""
        return f"{self.base_url}/dashboard/bookings/{booking_id}"

    async def _send(self, email_data: dict) -> dict:
        # resend is synchronous; keep the event loop free
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, resend.Emails.send, email_data)

    async def notify(self, event: str, recipient: Optional[User], payload: dict) -> bool:
        """
        Send one event email.

        Args:
            event: Event name, e.g. ``booking_confirmed``
            recipient: User receiving the email
            payload: Template values (service_name, date, time, ...)

        Returns:
            True if the email was accepted by Resend, False otherwise
        """
        if event not in TEMPLATES:
            logger.error(f"Unknown notification event: {event}")
            return False

        if recipient is None or not recipient.email:
            logger.warning(f"No email address for {event} notification, skipping")
            return False

        if not self.enabled:
            logger.info(
                f"RESEND_API_KEY not configured, skipping {event} email to {recipient.id}"
            )
            return False

        subject, html = render(event, payload, self._booking_url(payload))
        email_data = {
            "from": self.sender,
            "to": [recipient.email],
            "subject": subject,
            "html": html,
        }

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self._send(email_data)
                logger.info(f"Sent {event} email to {recipient.id}: {response}")
                return True
            except Exception as e:
                logger.warning(
                    f"Email send attempt {attempt}/{attempts} for {event} "
                    f"to {recipient.id} failed: {e}"
                )
                if attempt < attempts:
                    await asyncio.sleep(self.retry_delay * attempt)

        logger.error(f"Giving up on {event} email to {recipient.id}")
        return False


_notifier: Optional[EmailNotifier] = None


def get_notifier() -> EmailNotifier:
    """Get or create the process-wide notifier."""
    global _notifier
    if _notifier is None:
        _notifier = EmailNotifier()
    return _notifier
