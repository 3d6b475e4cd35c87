"""
Input validation utilities for request parameters and API inputs.
"""

import re
from typing import Optional

from utils.constants import MAX_SERVICE_DURATION_MINUTES

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def validate_time_string(value: str) -> bool:
    """
    Validate a 24h "HH:MM" time string.

    Args:
        value: Time string

    Returns:
        True if valid, False otherwise
    """
    return isinstance(value, str) and bool(TIME_PATTERN.match(value))


def validate_duration(duration: int) -> bool:
    """
    Validate a service duration in minutes.

    Durations must be positive and fit inside a single day.
    """
    return (
        isinstance(duration, int)
        and not isinstance(duration, bool)
        and 0 < duration <= MAX_SERVICE_DURATION_MINUTES
    )


def validate_identifier(value: Optional[str]) -> bool:
    """Identifiers are non-empty strings without whitespace."""
    return bool(value) and isinstance(value, str) and not re.search(r"\s", value)


def sanitize_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize user input text.

    Args:
        text: Input text
        max_length: Optional maximum length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Remove control characters except newlines and tabs
    sanitized = re.sub(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]", "", str(text))

    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
