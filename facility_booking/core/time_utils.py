"""Helpers for HH:MM wall-clock times used by operating hours and bookings."""

from datetime import time
import re

HHMM_REGEX = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    """
    Parse a 24h ``HH:MM`` string.

    Raises:
        ValueError: If the string is not a valid 24h time
    """
    match = HHMM_REGEX.fullmatch(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(value: int) -> time:
    if value < 0 or value >= 24 * 60:
        raise ValueError(f"Minutes out of range for a wall-clock time: {value}")
    return time(value // 60, value % 60)


def duration_minutes(start: time, end: time) -> int:
    """Minutes between two same-day times (negative if end precedes start)."""
    return time_to_minutes(end) - time_to_minutes(start)
