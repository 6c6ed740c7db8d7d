"""
Interval conflict detection for facility bookings.

Bookings occupy half-open intervals [start, end): a booking ending at 10:00
and another starting at 10:00 do not conflict.
"""

from typing import Any, Iterable, List, Protocol, TypeVar

from ..models.booking import ACTIVE_STATUSES


class BookedInterval(Protocol):
    start_time: Any
    end_time: Any
    status: str


B = TypeVar("B", bound=BookedInterval)


def overlaps(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """
    True when [a_start, a_end) and [b_start, b_end) share any instant.

    Works for any mutually comparable values (times, minutes, datetimes).
    """
    return a_start < b_end and b_start < a_end


def find_conflicts(start: Any, end: Any, bookings: Iterable[B]) -> List[B]:
    """Active bookings whose interval overlaps [start, end)."""
    return [
        booking
        for booking in bookings
        if booking.status in ACTIVE_STATUSES
        and overlaps(start, end, booking.start_time, booking.end_time)
    ]
