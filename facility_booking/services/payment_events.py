# facility_booking/services/payment_events.py
"""
Entry points for the external payment collaborator.

The gateway protocol lives elsewhere; this handler only hears "payment
verified" and "payment failed" for a booking and reacts to them.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, StateException, ValidationException
from ..models.booking import Booking, BookingStatus
from ..models.payment import Payment, PaymentStatus
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from .base import BaseService
from .booking_state_machine import BookingStateMachine

logger = logging.getLogger(__name__)


class PaymentEventHandler(BaseService):
    def __init__(
        self,
        db: Session,
        state_machine: BookingStateMachine,
        payment_repository: Optional[PaymentRepository] = None,
    ):
        super().__init__(db)
        self.state_machine = state_machine
        self.payment_repository = (
            payment_repository or RepositoryFactory.create_payment_repository(db)
        )

    @BaseService.measure_operation("payment_verified")
    def on_payment_verified(self, booking_id: str, payment_id: Optional[str] = None) -> Booking:
        """
        Confirm the booking a verified payment belongs to.

        When ``payment_id`` is given the payment must belong to the booking
        and be pending or already completed. It is marked completed and
        recorded as the booking's payment reference in the same transaction
        that confirms the booking, so a later cancellation refunds it.

        Raises:
            NotFoundException: Unknown booking or payment
            ValidationException: Payment belongs to another booking
            StateException: Payment already failed or refunded
            InvalidTransitionException: Booking is not pending
        """
        if payment_id is None:
            return self.state_machine.confirm(booking_id)

        def settle_payment(booking: Booking, at: datetime) -> None:
            payment = self._get_booking_payment(booking.id, payment_id)
            if not payment.is_verifiable:
                raise StateException(
                    "Only pending or completed payments can confirm a booking",
                    code="PAYMENT_NOT_VERIFIABLE",
                    details={"payment_id": payment_id, "status": payment.status},
                )
            payment.mark_completed(at)

        return self.state_machine.confirm(
            booking_id, payment_ref=payment_id, settle=settle_payment
        )

    @BaseService.measure_operation("payment_failed")
    def on_payment_failed(self, booking_id: str, payment_id: Optional[str] = None) -> Booking:
        """
        Record a failed payment. The booking stays pending so the user can retry.

        A pending booking loses its payment reference; the next attempt sets
        a new one.
        """
        with self.transaction():
            booking = self.state_machine.booking_repository.get_for_update(booking_id)
            if booking is None:
                raise NotFoundException(
                    "Booking not found",
                    code="BOOKING_NOT_FOUND",
                    details={"booking_id": booking_id},
                )
            if payment_id is not None:
                payment = self._get_booking_payment(booking_id, payment_id)
                if payment.status == PaymentStatus.PENDING.value:
                    payment.mark_failed()
            if booking.status == BookingStatus.PENDING.value:
                booking.payment_ref = None

        self.logger.warning(
            "Payment failed for booking %s",
            booking_id,
            extra={"booking_id": booking_id, "payment_id": payment_id, "status": booking.status},
        )
        return booking

    def _get_booking_payment(self, booking_id: str, payment_id: str) -> Payment:
        payment = self.payment_repository.get_for_update(payment_id)
        if payment is None:
            raise NotFoundException(
                "Payment not found", code="PAYMENT_NOT_FOUND", details={"payment_id": payment_id}
            )
        if payment.booking_id != booking_id:
            raise ValidationException(
                "Payment does not belong to this booking",
                code="PAYMENT_BOOKING_MISMATCH",
                details={"payment_id": payment_id, "booking_id": booking_id},
            )
        return payment
