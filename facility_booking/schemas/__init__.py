# facility_booking/schemas/__init__.py
"""Pydantic schemas for the facility booking API."""

from .availability import DaySlots, Slot
from .base import Money, StandardizedModel, StrictModel
from .base_responses import ErrorResponse, PaginatedResponse
from .booking import BookingCancel, BookingCreate, BookingFilter, BookingResponse
from .facility import BookableFacility, OperatingWindow
from .payment import PaymentResponse, PaymentSignal, RefundRequest

__all__ = [
    "BookableFacility",
    "BookingCancel",
    "BookingCreate",
    "BookingFilter",
    "BookingResponse",
    "DaySlots",
    "ErrorResponse",
    "Money",
    "OperatingWindow",
    "PaginatedResponse",
    "PaymentResponse",
    "PaymentSignal",
    "RefundRequest",
    "Slot",
    "StandardizedModel",
    "StrictModel",
]
