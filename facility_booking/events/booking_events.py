"""
Booking lifecycle events.

Each event names the booking and its owner so the notification collaborator
can route it without loading the booking again.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BookingEvent:
    booking_id: str
    user_id: str

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BookingCreated(BookingEvent):
    facility_id: str
    booking_code: str
    created_at: datetime


@dataclass(frozen=True)
class BookingConfirmed(BookingEvent):
    """Payment verified."""

    confirmed_at: datetime


@dataclass(frozen=True)
class BookingCancelled(BookingEvent):
    """Cancelled by the owner, an admin or the pending-expiry sweep."""

    cancelled_by: str
    cancelled_at: datetime
    reason: Optional[str] = None
    # Total of completed payments marked refunded in the same transaction
    refund_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class BookingCompleted(BookingEvent):
    completed_at: datetime
