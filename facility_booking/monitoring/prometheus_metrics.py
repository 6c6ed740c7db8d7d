"""
Prometheus metrics for the facility booking engine.

Service timings come from the @measure_operation decorator; booking outcomes
and notification delivery failures are recorded by the services that produce
them. Everything lives on a private registry exposed at /metrics.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "facility_booking_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "facility_booking_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "facility_booking_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_outcomes_total = Counter(
    "facility_booking_booking_outcomes_total",
    "Booking create attempts by outcome code",
    ["outcome"],  # created | SLOT_CONFLICT | PAST_DATE | ...
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "facility_booking_booking_transitions_total",
    "Booking lifecycle transitions",
    ["transition"],  # confirm | cancel | complete | expire
    registry=REGISTRY,
)

transaction_retries_total = Counter(
    "facility_booking_transaction_retries_total",
    "Units of work replayed after a transient storage conflict",
    ["operation"],
    registry=REGISTRY,
)

notification_failures_total = Counter(
    "facility_booking_notification_failures_total",
    "Booking events the notification sink failed to accept",
    ["event_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin recording API over the module-level collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingLedger')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_outcome(outcome: str) -> None:
        booking_outcomes_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_transition(transition: str) -> None:
        booking_transitions_total.labels(transition=transition).inc()

    @staticmethod
    def record_transaction_retry(operation: str) -> None:
        transaction_retries_total.labels(operation=operation).inc()

    @staticmethod
    def record_notification_failure(event_type: str) -> None:
        notification_failures_total.labels(event_type=event_type).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Current values of every collector in text exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
