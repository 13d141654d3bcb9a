"""
Prometheus metrics for the booking engine.

Service timings are fed by the ``@measure_operation`` decorator; booking,
rate-limit and notification outcomes are recorded by the components that
produce them. Everything lives on a private registry exposed at ``/metrics``.
"""

from typing import Optional

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
    "washbay_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "washbay_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "washbay_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_outcomes_total = Counter(
    "washbay_booking_outcomes_total",
    "Booking write attempts by operation and outcome",
    ["operation", "outcome", "override"],
    registry=REGISTRY,
)

date_lock_wait_seconds = Histogram(
    "washbay_date_lock_wait_seconds",
    "Time spent waiting for the per-date booking lock",
    registry=REGISTRY,
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)

notifications_total = Counter(
    "washbay_notifications_total",
    "Notification deliveries by channel and status",
    ["event_type", "channel", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

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
            service: Service name (e.g., 'BookingService')
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
    def record_booking_outcome(operation: str, outcome: str, override: bool = False) -> None:
        booking_outcomes_total.labels(
            operation=operation, outcome=outcome, override=str(override).lower()
        ).inc()

    @staticmethod
    def observe_lock_wait(seconds: float) -> None:
        date_lock_wait_seconds.observe(max(seconds, 0.0))

    @staticmethod
    def record_notification(event_type: str, channel: str, status: str) -> None:
        notifications_total.labels(event_type=event_type, channel=channel, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
