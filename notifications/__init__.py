"""Booking event notifications."""

from .email import EmailNotifier, get_notifier

__all__ = ["EmailNotifier", "get_notifier"]
