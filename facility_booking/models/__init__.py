# facility_booking/models/__init__.py
"""
SQLAlchemy models for the facility booking engine.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import ACTIVE_STATUSES, Booking, BookingStatus
from .facility import Facility
from .payment import Payment, PaymentStatus

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingStatus",
    "Facility",
    "Payment",
    "PaymentStatus",
]
