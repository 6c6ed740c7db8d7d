# facility_booking/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.clock import Clock, PlatformClock
from ...core.config import BookingConfig, get_booking_config
from ...events.publisher import EventPublisher
from ...services.availability_service import AvailabilityService
from ...services.booking_ledger import BookingLedger
from ...services.booking_state_machine import BookingStateMachine
from ...services.payment_events import PaymentEventHandler
from ...services.refund_service import RefundService
from .database import get_db


def get_config() -> BookingConfig:
    return get_booking_config()


def get_clock(config: BookingConfig = Depends(get_config)) -> Clock:
    return PlatformClock(config.platform_timezone)


@lru_cache(maxsize=1)
def get_event_publisher() -> EventPublisher:
    """Process-wide publisher using the default notification sink."""
    return EventPublisher()


def get_availability_service(
    db: Session = Depends(get_db), config: BookingConfig = Depends(get_config)
) -> AvailabilityService:
    return AvailabilityService(db, config)


def get_booking_ledger(
    db: Session = Depends(get_db),
    config: BookingConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> BookingLedger:
    return BookingLedger(db, config, clock=clock, publisher=publisher)


def get_booking_state_machine(
    db: Session = Depends(get_db),
    config: BookingConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> BookingStateMachine:
    return BookingStateMachine(db, config, clock=clock, publisher=publisher)


def get_payment_event_handler(
    db: Session = Depends(get_db),
    state_machine: BookingStateMachine = Depends(get_booking_state_machine),
) -> PaymentEventHandler:
    return PaymentEventHandler(db, state_machine)


def get_refund_service(
    db: Session = Depends(get_db),
    config: BookingConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> RefundService:
    return RefundService(db, config, clock=clock)
