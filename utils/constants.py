"""
Application-wide constants.
Centralizes magic numbers and display values.
"""

# Day names indexed by day_of_week (0=Sunday..6=Saturday)
DAY_NAMES = [
    "Nedelja",
    "Ponedeljak",
    "Utorak",
    "Sreda",
    "Četvrtak",
    "Petak",
    "Subota",
]
DAYS_IN_WEEK = 7

# Validation limits
MAX_NOTES_LENGTH = 500
MAX_SERVICE_DURATION_MINUTES = 24 * 60

# Time constants
MINUTES_IN_DAY = 24 * 60

# Review windows (UTC)
REVIEW_EDIT_WINDOW_DAYS = 7
REVIEW_DELETE_WINDOW_HOURS = 24

# User-facing messages
PROVIDER_NOT_WORKING_MESSAGE = "Provider does not work on this day"
