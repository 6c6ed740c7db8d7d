# facility_booking/services/refund_service.py
"""
Explicit administrative refunds.

Cancellation refunds happen inside the booking state machine. This service
covers the separate admin action of refunding (possibly part of) a completed
payment without touching the booking's status.
"""

from datetime import timezone
from decimal import Decimal, InvalidOperation
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock, PlatformClock
from ..core.config import BookingConfig
from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    StateException,
    ValidationException,
)
from ..models.payment import Payment
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from .base import BaseService
from .commission_calculator import round_half_up

logger = logging.getLogger(__name__)


class RefundService(BaseService):
    def __init__(
        self,
        db: Session,
        config: BookingConfig,
        clock: Optional[Clock] = None,
        payment_repository: Optional[PaymentRepository] = None,
    ):
        super().__init__(db)
        self.clock: Clock = clock or PlatformClock(config.platform_timezone)
        self.payment_repository = (
            payment_repository or RepositoryFactory.create_payment_repository(db)
        )

    @BaseService.measure_operation("process_refund")
    def process_refund(
        self,
        payment_id: str,
        actor: Actor,
        refund_amount: Optional[Union[Decimal, str, int, float]] = None,
        reason: Optional[str] = None,
    ) -> Payment:
        """
        Refund a completed payment, fully or in part.

        Args:
            payment_id: Payment to refund
            actor: Must be an administrator
            refund_amount: Amount to return; defaults to the full payment
            reason: Optional note stored on the payment

        Raises:
            ForbiddenException: Actor is not an administrator
            NotFoundException: Unknown payment
            StateException: Payment is not completed
            ValidationException: Amount not positive or above the payment amount
        """
        if not actor.is_admin:
            raise ForbiddenException("Only administrators can issue refunds")

        with self.transaction():
            payment = self.payment_repository.get_for_update(payment_id)
            if payment is None:
                raise NotFoundException(
                    "Payment not found",
                    code="PAYMENT_NOT_FOUND",
                    details={"payment_id": payment_id},
                )
            if not payment.is_refundable:
                raise StateException(
                    "Only completed payments can be refunded",
                    code="PAYMENT_NOT_REFUNDABLE",
                    details={"payment_id": payment_id, "status": payment.status},
                )

            amount = self._resolve_amount(payment, refund_amount)
            payment.mark_refunded(
                amount,
                (reason or "").strip() or "Admin refund",
                self.clock.now().astimezone(timezone.utc),
            )

        self.log_operation(
            "process_refund",
            payment_id=payment.id,
            booking_id=payment.booking_id,
            refund_amount=str(amount),
            refunded_by=actor.id,
        )
        return payment

    @staticmethod
    def _resolve_amount(
        payment: Payment, refund_amount: Optional[Union[Decimal, str, int, float]]
    ) -> Decimal:
        paid = Decimal(str(payment.amount))
        if refund_amount is None:
            return paid
        try:
            amount = round_half_up(Decimal(str(refund_amount)))
        except InvalidOperation:
            raise ValidationException(
                "Refund amount must be a number", code="INVALID_REFUND_AMOUNT"
            )
        if amount <= 0 or amount > paid:
            raise ValidationException(
                "Refund amount must be greater than zero and at most the amount paid",
                code="INVALID_REFUND_AMOUNT",
                details={"refund_amount": str(amount), "amount_paid": str(paid)},
            )
        return amount
