"""
Platform clock for the booking engine.

All "today" and "now" decisions (past dates, advance window, cancellation
notice, pending expiry) are evaluated in the platform's configured timezone.
"""

from datetime import date, datetime, time
from typing import Optional, Protocol

import pytz


class Clock(Protocol):
    """Time source consumed by the booking services."""

    @property
    def timezone(self) -> pytz.BaseTzInfo:
        ...

    def now(self) -> datetime:
        ...

    def today(self) -> date:
        ...


class PlatformClock:
    """Wall clock in the platform timezone."""

    def __init__(self, timezone_name: str):
        self._tz = pytz.timezone(timezone_name)

    @property
    def timezone(self) -> pytz.BaseTzInfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)

    def today(self) -> date:
        return self.now().date()


def localize(clock: Clock, on_date: date, at_time: time) -> datetime:
    """
    Build an aware datetime for a booking date/time in the clock's timezone.

    Args:
        clock: Clock whose timezone applies
        on_date: Calendar date
        at_time: Wall-clock time on that date

    Returns:
        Timezone-aware datetime
    """
    return clock.timezone.localize(datetime.combine(on_date, at_time))


def hours_until(clock: Clock, on_date: date, at_time: time, now: Optional[datetime] = None) -> float:
    """Hours from now until the given local date/time (negative when past)."""
    current = now or clock.now()
    return (localize(clock, on_date, at_time) - current).total_seconds() / 3600
