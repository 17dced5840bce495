"""Prometheus metrics for the witness registry.

Operational metrics only: registration outcomes, milestone firings,
notification deliveries and the active witness population.

Labels: service, environment on every series.
"""

import os
import threading

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Content type for Prometheus metrics endpoint
METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

# Thread lock for singleton initialization
_collector_lock = threading.Lock()

# Acceptance transaction latency buckets (5ms to 5s)
ACCEPT_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class MetricsCollector:
    """Collects and manages registry Prometheus metrics.

    Attributes:
        registrations_total: Counter of registration attempts by outcome.
        accept_duration_seconds: Histogram of successful acceptance latency.
        allocation_retries_total: Counter of retried acceptance transactions.
        milestones_fired_total: Counter of fired milestone thresholds.
        notifications_total: Counter of deliveries by kind and result.
        active_witnesses: Gauge of the active witness population.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics collector.

        Args:
            registry: Optional custom registry for testing isolation.
        """
        self._registry = registry or CollectorRegistry()

        self._environment = os.environ.get("ENVIRONMENT", "development")
        self._service_name = os.environ.get("SERVICE_NAME", "covenant-registry")

        self.registrations_total = Counter(
            name="covenant_registrations_total",
            documentation="Witness registration attempts by outcome",
            labelnames=["service", "environment", "outcome"],
            registry=self._registry,
        )

        self.accept_duration_seconds = Histogram(
            name="covenant_accept_duration_seconds",
            documentation="Duration of successful witness acceptance in seconds",
            labelnames=["service", "environment"],
            buckets=ACCEPT_DURATION_BUCKETS,
            registry=self._registry,
        )

        self.allocation_retries_total = Counter(
            name="covenant_allocation_retries_total",
            documentation="Acceptance transactions retried after contention",
            labelnames=["service", "environment"],
            registry=self._registry,
        )

        self.milestones_fired_total = Counter(
            name="covenant_milestones_fired_total",
            documentation="Milestone thresholds fired",
            labelnames=["service", "environment"],
            registry=self._registry,
        )

        self.notifications_total = Counter(
            name="covenant_notifications_total",
            documentation="Notification deliveries by kind and result",
            labelnames=["service", "environment", "kind", "result"],
            registry=self._registry,
        )

        self.active_witnesses = Gauge(
            name="covenant_active_witnesses",
            documentation="Current number of active witnesses",
            labelnames=["service", "environment"],
            registry=self._registry,
        )

    def increment_registrations(self, outcome: str) -> None:
        """Count a registration attempt.

        Args:
            outcome: ``accepted`` or the error code that rejected it.
        """
        self.registrations_total.labels(
            service=self._service_name,
            environment=self._environment,
            outcome=outcome,
        ).inc()

    def observe_accept_duration(self, duration: float) -> None:
        self.accept_duration_seconds.labels(
            service=self._service_name,
            environment=self._environment,
        ).observe(duration)

    def increment_allocation_retries(self) -> None:
        self.allocation_retries_total.labels(
            service=self._service_name,
            environment=self._environment,
        ).inc()

    def increment_milestones_fired(self, count: int = 1) -> None:
        self.milestones_fired_total.labels(
            service=self._service_name,
            environment=self._environment,
        ).inc(count)

    def increment_notifications(self, kind: str, result: str, count: int = 1) -> None:
        """Count notification deliveries.

        Args:
            kind: Notification kind value.
            result: ``sent``, ``failed`` or ``already_sent``.
            count: Number of deliveries.
        """
        if count <= 0:
            return
        self.notifications_total.labels(
            service=self._service_name,
            environment=self._environment,
            kind=kind,
            result=result,
        ).inc(count)

    def set_active_witnesses(self, count: int) -> None:
        self.active_witnesses.labels(
            service=self._service_name,
            environment=self._environment,
        ).set(count)

    def change_active_witnesses(self, delta: int) -> None:
        """Adjust the active witness gauge after an accept (+1) or revoke (-1)."""
        self.active_witnesses.labels(
            service=self._service_name,
            environment=self._environment,
        ).inc(delta)

    def get_registry(self) -> CollectorRegistry:
        """Get the collector registry.

        Returns:
            The Prometheus collector registry.
        """
        return self._registry


# Singleton instance
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get the singleton MetricsCollector instance (thread-safe).

    Returns:
        The global MetricsCollector instance.
    """
    global _metrics_collector
    if _metrics_collector is None:
        with _collector_lock:
            # Double-check inside lock
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def generate_metrics() -> bytes:
    """Generate Prometheus metrics in exposition format.

    Returns:
        Metrics in Prometheus text format as bytes.
    """
    return generate_latest(get_metrics_collector().get_registry())


def reset_metrics_collector() -> None:
    """Reset the singleton collector (for testing only)."""
    global _metrics_collector
    with _collector_lock:
        _metrics_collector = None
