# facility_booking/services/booking_state_machine.py
"""
Booking lifecycle transitions.

    pending   -> confirmed | cancelled
    confirmed -> cancelled | completed
    cancelled, completed: terminal

Every transition loads the booking under a row lock and applies the status
change together with its side effects (refund marking) in one transaction.
Events are published only after the commit.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import logging
from typing import Callable, Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock, PlatformClock, hours_until, localize
from ..core.config import BookingConfig
from ..core.exceptions import (
    CancellationNoticeException,
    DomainException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    PolicyViolationException,
    RepositoryException,
    ValidationException,
)
from ..events.booking_events import BookingCancelled, BookingCompleted, BookingConfirmed
from ..events.publisher import EventPublisher
from ..models.booking import Booking, BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import Actor
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from .base import BaseService

logger = logging.getLogger(__name__)

EXPIRED_PENDING_REASON = "Payment not completed in time"

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.PENDING.value: frozenset(
        {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value}
    ),
    BookingStatus.CONFIRMED.value: frozenset(
        {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value}
    ),
    BookingStatus.CANCELLED.value: frozenset(),
    BookingStatus.COMPLETED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingStateMachine(BaseService):
    """Applies confirm, cancel, complete and expiry transitions."""

    def __init__(
        self,
        db: Session,
        config: BookingConfig,
        clock: Optional[Clock] = None,
        publisher: Optional[EventPublisher] = None,
        booking_repository: Optional[BookingRepository] = None,
        payment_repository: Optional[PaymentRepository] = None,
    ):
        super().__init__(db)
        self.config = config
        self.clock: Clock = clock or PlatformClock(config.platform_timezone)
        self.publisher = publisher or EventPublisher()
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.payment_repository = (
            payment_repository or RepositoryFactory.create_payment_repository(db)
        )

    def _now_utc(self) -> datetime:
        return self.clock.now().astimezone(timezone.utc)

    def _lock_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_for_update(booking_id)
        if booking is None:
            raise NotFoundException(
                "Booking not found", code="BOOKING_NOT_FOUND", details={"booking_id": booking_id}
            )
        return booking

    @staticmethod
    def _ensure_transition(booking: Booking, target: BookingStatus) -> None:
        if not can_transition(booking.status, target.value):
            raise InvalidTransitionException(booking.id, booking.status, target.value)

    # Transitions

    @BaseService.measure_operation("confirm_booking")
    def confirm(
        self,
        booking_id: str,
        payment_ref: Optional[str] = None,
        settle: Optional[Callable[[Booking, datetime], None]] = None,
    ) -> Booking:
        """
        Confirm a pending booking after payment verification.

        ``settle`` runs inside the confirming transaction, after the booking
        is locked and before it changes state. Anything it raises rolls the
        whole confirmation back.

        Raises:
            NotFoundException: Unknown booking
            InvalidTransitionException: Booking is not pending
        """
        with self.transaction():
            booking = self._lock_booking(booking_id)
            self._ensure_transition(booking, BookingStatus.CONFIRMED)
            now = self._now_utc()
            if settle is not None:
                settle(booking, now)
            booking.mark_confirmed(now)
            if payment_ref:
                booking.payment_ref = payment_ref

        prometheus_metrics.record_transition("confirm")
        self.log_operation("confirm_booking", booking_id=booking.id, user_id=booking.user_id)
        self.publisher.publish(
            BookingConfirmed(
                booking_id=booking.id,
                user_id=booking.user_id,
                confirmed_at=booking.confirmed_at,
            )
        )
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel(self, booking_id: str, actor: Actor, reason: Optional[str] = None) -> Booking:
        """
        Cancel a pending or confirmed booking.

        Customers may only cancel their own bookings, must give a reason and
        must respect the cancellation-notice window. Admin and system actors
        skip those checks. Completed payments for the booking are marked
        refunded in full within the same transaction.

        Raises:
            NotFoundException: Unknown booking
            InvalidTransitionException: Booking already cancelled or completed
            ForbiddenException: Customer does not own the booking
            CancellationNoticeException: Start is inside the notice window
            ValidationException: Missing or blank reason
        """
        cleaned_reason = reason.strip() if reason else None

        with self.transaction():
            booking = self._lock_booking(booking_id)
            self._ensure_transition(booking, BookingStatus.CANCELLED)
            now = self.clock.now()

            if not actor.is_privileged:
                self._check_customer_cancellation(booking, actor, cleaned_reason, now)

            booking.mark_cancelled(actor.id, cleaned_reason, now.astimezone(timezone.utc))
            refund_amount = self._refund_completed_payments(
                booking, cleaned_reason or "Booking cancelled", now.astimezone(timezone.utc)
            )

        prometheus_metrics.record_transition("cancel")
        self.log_operation(
            "cancel_booking",
            booking_id=booking.id,
            cancelled_by=actor.id,
            refund_amount=str(refund_amount) if refund_amount is not None else None,
        )
        self.publisher.publish(
            BookingCancelled(
                booking_id=booking.id,
                user_id=booking.user_id,
                cancelled_by=actor.id,
                cancelled_at=booking.cancelled_at,
                reason=cleaned_reason,
                refund_amount=refund_amount,
            )
        )
        return booking

    def _check_customer_cancellation(
        self, booking: Booking, actor: Actor, reason: Optional[str], now: datetime
    ) -> None:
        if booking.user_id != actor.id:
            raise ForbiddenException(
                "You can only cancel your own bookings", details={"booking_id": booking.id}
            )

        hours_left = hours_until(self.clock, booking.booking_date, booking.start_time, now=now)
        if hours_left < self.config.cancellation_notice_hours:
            raise CancellationNoticeException(self.config.cancellation_notice_hours, hours_left)

        if not reason:
            raise ValidationException(
                "Cancellation reason is required",
                code="CANCELLATION_REASON_REQUIRED",
                details={"booking_id": booking.id},
            )

    def _refund_completed_payments(
        self, booking: Booking, reason: str, at: datetime
    ) -> Optional[Decimal]:
        payments = self.payment_repository.get_completed_for_booking(booking.id)
        if not payments:
            return None

        refunded = Decimal("0")
        for payment in payments:
            payment.mark_refunded(payment.amount, reason, at)
            refunded += Decimal(str(payment.amount))
        self.payment_repository.flush()
        return refunded

    @BaseService.measure_operation("complete_booking")
    def complete(self, booking_id: str, actor: Actor) -> Booking:
        """
        Mark a confirmed booking as played once its end time has passed.

        Raises:
            ForbiddenException: Actor is not admin or system
            NotFoundException: Unknown booking
            InvalidTransitionException: Booking is not confirmed
            PolicyViolationException: Booking has not ended yet
        """
        if not actor.is_privileged:
            raise ForbiddenException("Only administrators can complete bookings")

        with self.transaction():
            booking = self._lock_booking(booking_id)
            self._ensure_transition(booking, BookingStatus.COMPLETED)
            now = self.clock.now()
            ends_at = localize(self.clock, booking.booking_date, booking.end_time)
            if now < ends_at:
                raise PolicyViolationException(
                    "Booking has not ended yet",
                    code="BOOKING_NOT_ENDED",
                    details={"booking_id": booking.id, "ends_at": ends_at.isoformat()},
                )
            booking.mark_completed(now.astimezone(timezone.utc))

        prometheus_metrics.record_transition("complete")
        self.log_operation("complete_booking", booking_id=booking.id, completed_by=actor.id)
        self.publisher.publish(
            BookingCompleted(
                booking_id=booking.id,
                user_id=booking.user_id,
                completed_at=booking.completed_at,
            )
        )
        return booking

    # Pending expiry

    @BaseService.measure_operation("expire_stale_pending")
    def expire_stale_pending(self, now: Optional[datetime] = None) -> int:
        """
        Cancel pending bookings whose payment did not complete within the TTL.

        Each booking expires in its own transaction; one failure does not stop
        the sweep.

        Returns:
            Number of bookings expired
        """
        ttl = self.config.pending_booking_ttl_minutes
        if ttl is None:
            return 0

        current = _as_utc(now or self.clock.now())
        cutoff = current - timedelta(minutes=ttl)
        booking_ids = self.booking_repository.get_stale_pending_ids(cutoff)

        expired: List[str] = []
        for booking_id in booking_ids:
            try:
                if self._expire_one(booking_id, cutoff, current):
                    expired.append(booking_id)
            except (DomainException, RepositoryException) as exc:
                self.logger.warning(
                    "Failed to expire pending booking %s: %s",
                    booking_id,
                    exc,
                    extra={"booking_id": booking_id},
                )

        if expired:
            self.logger.info(
                "Expired %s stale pending bookings",
                len(expired),
                extra={"booking_ids": expired, "cutoff": cutoff.isoformat()},
            )
        return len(expired)

    def _expire_one(self, booking_id: str, cutoff: datetime, now: datetime) -> bool:
        system = Actor.system()
        with self.transaction():
            booking = self._lock_booking(booking_id)
            # Re-check under the lock; payment may have confirmed it meanwhile
            if booking.status != BookingStatus.PENDING.value:
                return False
            if booking.created_at is not None and _as_utc(booking.created_at) >= cutoff:
                return False
            booking.mark_cancelled(system.id, EXPIRED_PENDING_REASON, now)
            refund_amount = self._refund_completed_payments(booking, EXPIRED_PENDING_REASON, now)

        prometheus_metrics.record_transition("expire")
        self.publisher.publish(
            BookingCancelled(
                booking_id=booking.id,
                user_id=booking.user_id,
                cancelled_by=system.id,
                cancelled_at=booking.cancelled_at,
                reason=EXPIRED_PENDING_REASON,
                refund_amount=refund_amount,
            )
        )
        return True
