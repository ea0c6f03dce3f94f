"""
Prometheus metrics for the booking core.

Service timings are fed by the @measure_operation decorator on BaseService;
the domain counters below are incremented by the admission, ledger and
side-effect code paths.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so tests and multiple app instances never collide with defaults
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "bookati_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "bookati_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "bookati_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_admissions_total = Counter(
    "bookati_booking_admissions_total",
    "Booking admission attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

capacity_rejections_total = Counter(
    "bookati_capacity_rejections_total",
    "Reservations refused because the slot lacked capacity",
    ["operation"],
    registry=REGISTRY,
)

package_units_consumed_total = Counter(
    "bookati_package_units_consumed_total",
    "Service units covered by package subscriptions",
    registry=REGISTRY,
)

invoice_dispatch_total = Counter(
    "bookati_invoice_dispatch_total",
    "Post-commit invoice dispatch decisions and results",
    ["outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

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
            service: Service name (e.g., 'BookingAdmissionService')
            operation: Operation name (e.g., 'admit')
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
        PrometheusMetrics._invalidate_cache()

    # Domain helpers
    @staticmethod
    def record_admission(outcome: str) -> None:
        """Count an admission attempt (admitted, insufficient_capacity, lock_timeout, ...)."""
        booking_admissions_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_capacity_rejection(operation: str) -> None:
        capacity_rejections_total.labels(operation=operation).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_package_units_consumed(units: int) -> None:
        if units > 0:
            package_units_consumed_total.inc(units)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_invoice_dispatch(outcome: str) -> None:
        """Count an invoice decision: created, skipped or failed."""
        invoice_dispatch_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        ttl = PrometheusMetrics._cache_ttl_seconds
        if payload is not None and ts is not None and (now - ts) <= ttl:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
