# facility_booking/models/booking.py
"""
Booking model for the facility booking engine.

A booking reserves a facility for a half-open [start_time, end_time)
interval on one calendar date. Bookings are created pending, confirmed
once payment is verified, and end cancelled or completed. They are never
hard-deleted.

Besides the application-level conflict check, storage refuses overlapping
active bookings: an exclusion constraint on PostgreSQL and an equivalent
BEFORE INSERT trigger on SQLite, both named
``bookings_no_overlap_per_facility``.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Tuple

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT_NAME = "bookings_no_overlap_per_facility"
BOOKING_CODE_CONSTRAINT_NAME = "uq_bookings_booking_code"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Awaiting payment
    CONFIRMED = "confirmed"  # Payment verified
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES: Tuple[str, ...] = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    """
    Reservation of a facility time range by a user.

    Price and commission are snapshotted at creation so later facility
    price changes never alter existing bookings.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    facility_id = Column(String(26), ForeignKey("facilities.id"), nullable=False)
    user_id = Column(String(64), nullable=False)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    total_amount = Column(Numeric(10, 2), nullable=False)
    commission_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    booking_code = Column(String(16), nullable=False)
    special_request = Column(Text, nullable=True)
    payment_ref = Column(String(255), nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(64), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    facility = relationship("Facility")
    payments = relationship("Payment", back_populates="booking", order_by="Payment.created_at")

    __table_args__ = (
        UniqueConstraint("booking_code", name=BOOKING_CODE_CONSTRAINT_NAME),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("total_amount >= 0", name="ck_bookings_amount_non_negative"),
        CheckConstraint("commission_amount >= 0", name="ck_bookings_commission_non_negative"),
        Index("ix_bookings_facility_date_status", "facility_id", "booking_date", "status"),
        Index("ix_bookings_user_status_date", "user_id", "status", "booking_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: code={self.booking_code}, facility={self.facility_id}, "
            f"user={self.user_id}, date={self.booking_date}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def mark_confirmed(self, at: datetime) -> None:
        self.status = BookingStatus.CONFIRMED.value
        self.confirmed_at = at

    def mark_cancelled(self, cancelled_by_id: str, reason: str, at: datetime) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_by_id = cancelled_by_id
        self.cancellation_reason = reason
        self.cancelled_at = at

    def mark_completed(self, at: datetime) -> None:
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = at


# Storage-level overlap guard. Bookings share one date, so the range only
# needs the time component combined with that date.
_PG_ENABLE_BTREE_GIST = DDL("CREATE EXTENSION IF NOT EXISTS btree_gist")

_PG_OVERLAP_EXCLUSION = DDL(
    f"ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_CONSTRAINT_NAME} "
    "EXCLUDE USING gist ("
    "facility_id WITH =, "
    "tsrange(booking_date + start_time, booking_date + end_time, '[)') WITH &&"
    ") WHERE (status IN ('pending', 'confirmed'))"
)

_SQLITE_OVERLAP_TRIGGER = DDL(
    f"CREATE TRIGGER IF NOT EXISTS {OVERLAP_CONSTRAINT_NAME} "
    "BEFORE INSERT ON bookings "
    "WHEN NEW.status IN ('pending', 'confirmed') "
    "BEGIN "
    f"SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT_NAME}') "
    "WHERE EXISTS ("
    "SELECT 1 FROM bookings b "
    "WHERE b.facility_id = NEW.facility_id "
    "AND b.booking_date = NEW.booking_date "
    "AND b.status IN ('pending', 'confirmed') "
    "AND b.start_time < NEW.end_time "
    "AND NEW.start_time < b.end_time"
    "); "
    "END"
)

event.listen(
    Booking.__table__,
    "before_create",
    _PG_ENABLE_BTREE_GIST.execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    _PG_OVERLAP_EXCLUSION.execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    _SQLITE_OVERLAP_TRIGGER.execute_if(dialect="sqlite"),
)
