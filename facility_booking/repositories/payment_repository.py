# facility_booking/repositories/payment_repository.py
"""
Payment Repository for the facility booking engine.

Covers the payment rows the engine itself mutates: verification outcome,
failure marking and refunds.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import Payment, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_for_update(self, payment_id: str) -> Optional[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.id == payment_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking payment {payment_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock payment: {str(e)}")

    def get_completed_for_booking(self, booking_id: str) -> List[Payment]:
        """Completed (refundable) payments for a booking, locked for update."""
        try:
            return (
                self.db.query(Payment)
                .filter(
                    Payment.booking_id == booking_id,
                    Payment.status == PaymentStatus.COMPLETED.value,
                )
                .order_by(Payment.created_at)
                .with_for_update()
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading payments for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking payments: {str(e)}")
