"""
Facility views used by the booking engine.

``BookableFacility`` is the read-only projection of a facility that pricing,
availability and booking policy depend on.
"""

from datetime import date, time
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ..core.config import WEEKDAYS
from ..core.time_utils import format_hhmm, parse_hhmm


class OperatingWindow(BaseModel):
    """Daily open/close times. ``close`` is exclusive."""

    model_config = ConfigDict(frozen=True)

    open: time
    close: time

    @field_validator("open", "close", mode="before")
    @classmethod
    def parse_time(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_hhmm(v)
        return v

    @model_validator(mode="after")
    def validate_order(self) -> "OperatingWindow":
        if self.open >= self.close:
            raise ValueError("Opening time must be before closing time")
        return self

    def contains(self, start: time, end: time) -> bool:
        return self.open <= start and end <= self.close

    def as_hhmm(self) -> Dict[str, str]:
        return {"open": format_hhmm(self.open), "close": format_hhmm(self.close)}


class BookableFacility(BaseModel):
    """Facility fields the engine reads. Weekdays without a window are closed."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price_per_hour: Decimal
    commission_rate: Optional[Decimal] = None
    operating_hours: Dict[str, Optional[OperatingWindow]]
    is_active: bool = True
    is_verified: bool = True

    @property
    def is_bookable(self) -> bool:
        return self.is_active and self.is_verified

    def window_for(self, on_date: date) -> Optional[OperatingWindow]:
        return self.operating_hours.get(WEEKDAYS[on_date.weekday()])
