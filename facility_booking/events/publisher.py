"""
Event publisher - forwards booking events to the notification collaborator.

Publishing happens after the booking transaction commits and never raises:
a failing sink is logged and counted, and the booking outcome stands.
"""
from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, Optional, Protocol

from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


class NotificationSink(Protocol):
    """Receiver of booking events. Delivery transport is external."""

    def send(self, event: Event) -> None:
        ...


class LoggingSink:
    """Default sink: records events in the application log."""

    def send(self, event: Event) -> None:
        event_type = type(event).__name__
        logger.info(
            "Booking event %s",
            event_type,
            extra={"event_type": event_type, "payload": serialize_payload(event)},
        )


def serialize_payload(event: Event) -> Dict[str, Any]:
    payload = event.to_dict()

    # Convert datetime and Decimal values to JSON-friendly strings
    for key, value in payload.items():
        if isinstance(value, datetime):
            payload[key] = value.isoformat()
        elif isinstance(value, Decimal):
            payload[key] = str(value)
    return payload


class EventPublisher:
    """Publishes domain events to a notification sink."""

    def __init__(self, sink: Optional[NotificationSink] = None):
        self.sink: NotificationSink = sink or LoggingSink()

    def publish(self, event: Event) -> bool:
        """
        Deliver an event to the sink.

        Returns:
            True when the sink accepted the event, False otherwise
        """
        event_type = type(event).__name__
        try:
            self.sink.send(event)
            return True
        except Exception as exc:
            logger.warning(
                "Failed to publish %s: %s",
                event_type,
                exc,
                extra={"event_type": event_type},
            )
            prometheus_metrics.record_notification_failure(event_type)
            return False
