# facility_booking/api/dependencies/__init__.py
"""
FastAPI dependencies: database session, current actor and services.
"""

from .auth import get_current_actor, require_admin, require_privileged
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_ledger,
    get_booking_state_machine,
    get_clock,
    get_config,
    get_event_publisher,
    get_payment_event_handler,
    get_refund_service,
)

__all__ = [
    "get_availability_service",
    "get_booking_ledger",
    "get_booking_state_machine",
    "get_clock",
    "get_config",
    "get_current_actor",
    "get_db",
    "get_event_publisher",
    "get_payment_event_handler",
    "get_refund_service",
    "require_admin",
    "require_privileged",
]
