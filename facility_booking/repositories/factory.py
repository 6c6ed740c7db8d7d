# facility_booking/repositories/factory.py
"""
Repository Factory for the facility booking engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import Mapping, Optional

from sqlalchemy.orm import Session

from .booking_repository import BookingRepository
from .facility_repository import FacilityRepository
from .payment_repository import PaymentRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        """Create repository for booking operations."""
        return BookingRepository(db)

    @staticmethod
    def create_facility_repository(
        db: Session,
        default_operating_hours: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> FacilityRepository:
        """Create repository for facility reads."""
        return FacilityRepository(db, default_operating_hours=default_operating_hours)

    @staticmethod
    def create_payment_repository(db: Session) -> PaymentRepository:
        """Create repository for payment rows."""
        return PaymentRepository(db)
