# facility_booking/schemas/booking.py
"""
Booking schemas for the facility booking engine.

Request models only check shape (date-only strings, HH:MM times, lengths).
Business rules such as duration bounds and operating hours belong to the
booking services so they surface as typed domain errors.
"""

from datetime import date, datetime, time
import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.time_utils import parse_hhmm
from ..models.booking import BookingStatus
from .base import Money, StandardizedModel, StrictModel

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")

BookingSortField = Literal["created_at", "booking_date", "start_time", "total_amount", "status"]
SortOrder = Literal["asc", "desc"]


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


class BookingCreate(StrictModel):
    """Request to reserve a facility for a time range on one date."""

    facility_id: str = Field(..., description="Facility to book")
    booking_date: date = Field(..., description="Date of the booking")
    start_time: time = Field(..., description="Start time, HH:MM")
    end_time: time = Field(..., description="End time, HH:MM (exclusive)")
    special_request: Optional[str] = Field(None, max_length=1000)

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "booking_date")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        """Convert HH:MM strings to time objects."""
        if isinstance(v, str):
            return parse_hhmm(v)
        return v

    @field_validator("special_request")
    @classmethod
    def clean_request(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class BookingCancel(BaseModel):
    """Schema for cancelling a booking. Reason is mandatory for non-admin actors."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class BookingResponse(StandardizedModel):
    """Booking as returned by the API."""

    id: str
    booking_code: str
    facility_id: str
    user_id: str
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    total_amount: Money
    commission_amount: Money
    status: BookingStatus
    special_request: Optional[str] = None
    payment_ref: Optional[str] = None

    created_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None


class BookingFilter(BaseModel):
    """
    Typed criteria for listing bookings.

    Every field maps to a fixed column predicate; the repository compiles it
    to SQLAlchemy expressions, so no caller-supplied text reaches SQL.
    """

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    facility_id: Optional[str] = None
    statuses: Optional[List[BookingStatus]] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_by: BookingSortField = "created_at"
    sort_order: SortOrder = "desc"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=50)

    @model_validator(mode="after")
    def validate_range(self) -> "BookingFilter":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page
