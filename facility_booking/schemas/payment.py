"""Schemas for payment signals and refunds."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..models.payment import PaymentStatus
from .base import Money, StandardizedModel, StrictModel


class PaymentSignal(StrictModel):
    """Notification from the payment collaborator about a booking's payment."""

    payment_id: Optional[str] = Field(None, description="Payment record the signal refers to")


class RefundRequest(StrictModel):
    refund_amount: Optional[Money] = Field(
        None, description="Amount to refund; defaults to the full payment amount"
    )
    reason: Optional[str] = Field(None, max_length=500)


class PaymentResponse(StandardizedModel):
    id: str
    booking_id: str
    user_id: str
    amount: Money
    method: Optional[str] = None
    transaction_ref: Optional[str] = None
    status: PaymentStatus
    paid_at: Optional[datetime] = None
    refund_amount: Optional[Money] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
