# tests/helpers.py
"""Shared test doubles for the booking engine."""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, List, Optional, Sequence

import pytz

PLATFORM_TZ = "Asia/Kathmandu"

# Monday
TODAY = date(2026, 3, 2)


class FixedClock:
    """Clock pinned to a settable instant in the platform timezone."""

    def __init__(self, now: Optional[datetime] = None, timezone_name: str = PLATFORM_TZ):
        self._tz = pytz.timezone(timezone_name)
        self._now = now or self._tz.localize(datetime.combine(TODAY, time(9, 0)))

    @property
    def timezone(self) -> pytz.BaseTzInfo:
        return self._tz

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    def set(self, on_date: date, at_time: time) -> None:
        self._now = self._tz.localize(datetime.combine(on_date, at_time))

    def advance(self, **kwargs: float) -> None:
        self._now = self._tz.normalize(self._now + timedelta(**kwargs))


class RecordingSink:
    def __init__(self) -> None:
        self.events: List[object] = []

    def send(self, event: object) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[object]:
        return [e for e in self.events if isinstance(e, event_type)]


class FailingSink:
    def send(self, event: object) -> None:
        raise RuntimeError("notification transport down")


class ScriptedRandom:
    """Feeds booking-code characters from a fixed list of codes."""

    def __init__(self, codes: Iterable[str]):
        self._chars: Iterator[str] = iter("".join(codes))

    def choice(self, seq: Sequence[str]) -> str:
        return next(self._chars)
