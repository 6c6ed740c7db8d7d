"""Booking events and the publisher that hands them to the notification sink."""

from .booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingCreated,
)
from .publisher import EventPublisher, LoggingSink, NotificationSink

__all__ = [
    "BookingCancelled",
    "BookingCompleted",
    "BookingConfirmed",
    "BookingCreated",
    "EventPublisher",
    "LoggingSink",
    "NotificationSink",
]
