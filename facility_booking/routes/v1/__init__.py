# facility_booking/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import bookings, facilities, payments

__all__ = ["bookings", "facilities", "payments"]
