"""
HTML email templates for booking events.
Each builder returns (subject, html).
"""

from html import escape
from typing import Callable, Dict, Tuple

THEME = {
    "primary": "#2563eb",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_muted": "#64748b",
}


def base_template(title: str, body: str, cta_url: str = "", cta_label: str = "") -> str:
    """Wrap event content in the shared layout."""
    cta = ""
    if cta_url and cta_label:
        cta = (
            f'<p><a href="{escape(cta_url)}" style="background:{THEME["primary"]};'
            f'color:#ffffff;padding:12px 24px;border-radius:6px;text-decoration:none">'
            f"{escape(cta_label)}</a></p>"
        )
    return (
        f'<div style="background:{THEME["background"]};padding:24px;'
        f'font-family:Arial,sans-serif;color:{THEME["text_primary"]}">'
        f"<h2>{escape(title)}</h2>{body}{cta}"
        f'<p style="color:{THEME["text_muted"]};font-size:12px">'
        f"You are receiving this because you have an account on MVP Usluge.</p>"
        f"</div>"
    )


def _when(payload: dict) -> str:
    return f"{escape(str(payload.get('date', '')))} at {escape(str(payload.get('time', '')))}"


def _service(payload: dict) -> str:
    return escape(str(payload.get("service_name", "your service")))


def booking_created(payload: dict) -> Tuple[str, str]:
    client = escape(str(payload.get("client_name", "A client")))
    body = (
        f"<p>{client} requested <strong>{_service(payload)}</strong> "
        f"on {_when(payload)}.</p><p>Please confirm or reject the request.</p>"
    )
    return "New booking request", body


def booking_confirmed(payload: dict) -> Tuple[str, str]:
    body = f"<p>Your booking for <strong>{_service(payload)}</strong> on {_when(payload)} is confirmed.</p>"
    return "Booking confirmed", body


def booking_rejected(payload: dict) -> Tuple[str, str]:
    body = f"<p>Your booking for <strong>{_service(payload)}</strong> on {_when(payload)} was rejected.</p>"
    notes = payload.get("provider_notes")
    if notes:
        body += f"<p>Provider note: {escape(str(notes))}</p>"
    return "Booking rejected", body


def booking_completed(payload: dict) -> Tuple[str, str]:
    body = (
        f"<p>Your appointment for <strong>{_service(payload)}</strong> on {_when(payload)} "
        f"is complete. You can now leave a review.</p>"
    )
    return "Booking completed", body


def booking_cancelled(payload: dict) -> Tuple[str, str]:
    by = escape(str(payload.get("cancelled_by", "the other party")))
    body = f"<p>The booking for <strong>{_service(payload)}</strong> on {_when(payload)} was cancelled by {by}.</p>"
    return "Booking cancelled", body


def booking_reminder(payload: dict) -> Tuple[str, str]:
    provider = escape(str(payload.get("provider_name", "your provider")))
    body = (
        f"<p>Reminder: <strong>{_service(payload)}</strong> with {provider} "
        f"tomorrow, {_when(payload)}.</p>"
    )
    return "Appointment reminder", body


def client_suspended(payload: dict) -> Tuple[str, str]:
    until = escape(str(payload.get("banned_until", "")))
    body = (
        "<p>Your account has been suspended from booking after repeated "
        f"late cancellations.</p><p>You can book again after {until}.</p>"
    )
    return "Booking suspended", body


TEMPLATES: Dict[str, Callable[[dict], Tuple[str, str]]] = {
    "booking_created": booking_created,
    "booking_confirmed": booking_confirmed,
    "booking_rejected": booking_rejected,
    "booking_completed": booking_completed,
    "booking_cancelled": booking_cancelled,
    "booking_reminder": booking_reminder,
    "client_suspended": client_suspended,
}


def render(event: str, payload: dict, cta_url: str = "") -> Tuple[str, str]:
    """
    Render subject and HTML for an event.

    Raises:
        KeyError: If the event has no template
    """
    subject, body = TEMPLATES[event](payload)
    return subject, base_template(subject, body, cta_url, "View booking" if cta_url else "")
