# facility_booking/models/payment.py
"""
Payment record for a booking.

The payment gateway itself lives outside the engine; this table is the slice
of it the engine reads and updates (verification, failure, refunds).
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base):
    """Payment made (or attempted) for a booking."""

    __tablename__ = "payments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(50), nullable=True)
    transaction_ref = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    refund_amount = Column(Numeric(10, 2), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    booking = relationship("Booking", back_populates="payments")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'refunded')",
            name="ck_payments_status",
        ),
        CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
        Index("ix_payments_booking_status", "booking_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id}: booking={self.booking_id} amount={self.amount} status={self.status}>"

    @property
    def is_refundable(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value

    def mark_refunded(self, amount, reason, at: datetime) -> None:
        self.status = PaymentStatus.REFUNDED.value
        self.refund_amount = amount
        self.refund_reason = reason
        self.refunded_at = at

    @property
    def is_verifiable(self) -> bool:
        return self.status in (PaymentStatus.PENDING.value, PaymentStatus.COMPLETED.value)

    def mark_completed(self, at: datetime) -> None:
        self.status = PaymentStatus.COMPLETED.value
        if self.paid_at is None:
            self.paid_at = at

    def mark_failed(self) -> None:
        self.status = PaymentStatus.FAILED.value
