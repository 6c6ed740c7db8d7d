# facility_booking/repositories/__init__.py
"""
Repository layer for the facility booking engine.

Repositories hold every query; services own transactions and business rules.
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .facility_repository import FacilityRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "FacilityRepository",
    "PaymentRepository",
    "RepositoryFactory",
]
