"""Shared helpers: configuration of logging, time handling, validation and errors."""
