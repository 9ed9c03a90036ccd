"""
Prometheus metrics exporter for the Oxford API client.

Exports low-cardinality metrics for the admission gate and the request
executor. No per-path or per-key labels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge
from prometheus_client.registry import CollectorRegistry

if TYPE_CHECKING:
    from oxfd.connectors.bucket import TokenBucket
    from oxfd.connectors.rest_client import RequestMetrics


# Labels that would cause cardinality explosion or leak credentials
FORBIDDEN_LABELS = frozenset(
    {
        "path",
        "endpoint",
        "query",
        "user_id",
        "username",
        "command",
        "server_key",
    }
)

# Executor counter attributes exported as oxfd_requests_<name>
_REQUEST_COUNTERS: tuple[tuple[str, str], ...] = (
    ("requests", "Total logical API calls"),
    ("attempts", "Total HTTP attempts, 429 retries included"),
    ("succeeded", "Total API calls that returned data"),
    ("failed", "Total API calls that raised a classified error"),
    ("retries", "Total retries after a 429 response"),
    ("rate_limited", "Total API calls failed after exhausting 429 retries"),
    ("timeouts", "Total HTTP attempts that hit the request timeout"),
    ("network_errors", "Total HTTP attempts that failed at the transport level"),
)


class MetricsExporter:
    """
    Prometheus metrics exporter for client infrastructure.

    Metric names:
    - oxfd_gate_*     : admission gate (token bucket) metrics
    - oxfd_requests_* : request executor metrics

    Usage:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        exporter.update(bucket=api.rest.bucket, request_metrics=api.rest.metrics)
        # generate_latest(registry) -> bytes for a /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Initialize metrics exporter.

        Args:
            registry: Prometheus CollectorRegistry. If None, a private one is created.
        """
        self._registry = registry or CollectorRegistry()

        # === Admission gate metrics (oxfd_gate_*) ===
        self._gate_available_tokens = Gauge(
            "oxfd_gate_available_tokens",
            "Tokens currently available in the admission gate",
            registry=self._registry,
        )
        self._gate_capacity = Gauge(
            "oxfd_gate_capacity",
            "Configured admission gate burst capacity",
            registry=self._registry,
        )
        self._gate_queue_depth = Gauge(
            "oxfd_gate_queue_depth",
            "Callers currently waiting for an admission token",
            registry=self._registry,
        )
        self._gate_max_wait_ms = Gauge(
            "oxfd_gate_max_wait_ms",
            "Longest observed wait for an admission token in milliseconds",
            registry=self._registry,
        )
        self._gate_acquired_immediate = Counter(
            "oxfd_gate_acquired_immediate",
            "Total admissions granted without waiting",
            registry=self._registry,
        )
        self._gate_acquired_deferred = Counter(
            "oxfd_gate_acquired_deferred",
            "Total admissions granted after waiting in the queue",
            registry=self._registry,
        )

        # === Executor metrics (oxfd_requests_*) ===
        self._request_counters: dict[str, Counter] = {
            name: Counter(f"oxfd_requests_{name}", doc, registry=self._registry)
            for name, doc in _REQUEST_COUNTERS
        }

        # Track last seen values for counter increments (counters are monotonic)
        self._last_gate_acquired_immediate = 0
        self._last_gate_acquired_deferred = 0
        self._last_request_counts: dict[str, int] = dict.fromkeys(self._request_counters, 0)

    @property
    def registry(self) -> CollectorRegistry:
        """Get the Prometheus CollectorRegistry."""
        return self._registry

    def update(
        self,
        bucket: TokenBucket | None = None,
        request_metrics: RequestMetrics | None = None,
    ) -> None:
        """
        Update all metrics from component states.

        Call this periodically (e.g., every scrape) to sync internal
        component metrics to Prometheus.

        Args:
            bucket: Admission gate, if rate limiting is enabled.
            request_metrics: Executor counters.
        """
        if bucket is not None:
            self._update_gate_metrics(bucket)

        if request_metrics is not None:
            self._update_request_metrics(request_metrics)

    def _update_gate_metrics(self, bucket: TokenBucket) -> None:
        """Update admission gate gauges and counters."""
        self._gate_available_tokens.set(bucket.available_tokens)
        self._gate_capacity.set(bucket.capacity)
        self._gate_queue_depth.set(bucket.queue_depth)
        self._gate_max_wait_ms.set(bucket.metrics.max_wait_ms)

        current_immediate = bucket.metrics.acquired_immediate
        delta = current_immediate - self._last_gate_acquired_immediate
        if delta > 0:
            self._gate_acquired_immediate.inc(delta)
        self._last_gate_acquired_immediate = current_immediate

        current_deferred = bucket.metrics.acquired_deferred
        delta = current_deferred - self._last_gate_acquired_deferred
        if delta > 0:
            self._gate_acquired_deferred.inc(delta)
        self._last_gate_acquired_deferred = current_deferred

    def _update_request_metrics(self, request_metrics: RequestMetrics) -> None:
        """Update executor counters by delta since the last update."""
        for name, counter in self._request_counters.items():
            current = getattr(request_metrics, name)
            delta = current - self._last_request_counts[name]
            if delta > 0:
                counter.inc(delta)
            self._last_request_counts[name] = current

    def reset_counter_tracking(self) -> None:
        """
        Reset internal counter tracking.

        Use when components are recreated. Does NOT reset the Prometheus
        counters themselves.
        """
        self._last_gate_acquired_immediate = 0
        self._last_gate_acquired_deferred = 0
        self._last_request_counts = dict.fromkeys(self._request_counters, 0)


# Note: Counters are exported with _total suffix by prometheus_client
REQUIRED_METRIC_NAMES: frozenset[str] = frozenset(
    {
        # Admission gate (Gauges)
        "oxfd_gate_available_tokens",
        "oxfd_gate_capacity",
        "oxfd_gate_queue_depth",
        "oxfd_gate_max_wait_ms",
        # Admission gate (Counters)
        "oxfd_gate_acquired_immediate_total",
        "oxfd_gate_acquired_deferred_total",
        # Executor (Counters)
        *(f"oxfd_requests_{name}_total" for name, _ in _REQUEST_COUNTERS),
    }
)
