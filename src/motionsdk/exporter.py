"""
Prometheus metrics for a Motion client.

Only low-cardinality series: no user, key, path or URL labels. One exporter
instance follows one client; scrape-time code calls update(client) and then
renders the registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge
from prometheus_client.registry import CollectorRegistry

if TYPE_CHECKING:
    from motionsdk.client import Motion

# Labels that would create one series per user or per request
FORBIDDEN_LABELS = frozenset(
    {
        "user_id",
        "limiter_key",
        "key",
        "path",
        "url",
        "endpoint",
        "query",
        "api_key",
        "request_id",
    }
)

# get_status() field -> (metric name, help text). Exported as counters.
_COUNTER_FIELDS: dict[str, tuple[str, str]] = {
    "requests_sent": (
        "motionsdk_requests_sent",
        "Requests handed to the transport",
    ),
    "requests_refused_closed": (
        "motionsdk_requests_refused_closed",
        "Requests refused because the client was closed",
    ),
    "overruns": (
        "motionsdk_overruns",
        "429 responses received from Motion",
    ),
    "requests_admitted": (
        "motionsdk_gate_requests_admitted",
        "Requests admitted by the rate limit gate",
    ),
    "requests_deferred": (
        "motionsdk_gate_requests_deferred",
        "Admitted requests that waited in the queue first",
    ),
    "queue_overflows": (
        "motionsdk_gate_queue_overflows",
        "Requests rejected because the admission queue was full",
    ),
    "limiter_errors": (
        "motionsdk_gate_limiter_errors",
        "Admission attempts that failed inside the rate limiter",
    ),
    "penalties_recorded": (
        "motionsdk_gate_penalties_recorded",
        "Overruns recorded in the overrun limiter",
    ),
    "penalty_failures": (
        "motionsdk_gate_penalty_failures",
        "Overruns that could not be recorded",
    ),
}


class MetricsExporter:
    """
    Mirrors Motion.get_status() into Prometheus collectors.

    Usage:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        exporter.update(motion)
        # generate_latest(registry) -> bytes for /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

        self._client_open = Gauge(
            "motionsdk_client_open",
            "1 while the client accepts requests, 0 once closed",
            registry=self._registry,
        )
        self._queue_depth = Gauge(
            "motionsdk_gate_queue_depth",
            "Requests currently waiting for admission",
            registry=self._registry,
        )
        self._queue_max = Gauge(
            "motionsdk_gate_queue_max",
            "Configured admission queue size per key",
            registry=self._registry,
        )
        self._max_wait_ms = Gauge(
            "motionsdk_gate_max_wait_ms",
            "Longest admission wait observed, in milliseconds",
            registry=self._registry,
        )

        self._counters: dict[str, Counter] = {
            field: Counter(name, documentation, registry=self._registry)
            for field, (name, documentation) in _COUNTER_FIELDS.items()
        }
        # Counters are monotonic: track last seen totals and add the delta
        self._last_seen: dict[str, int] = dict.fromkeys(_COUNTER_FIELDS, 0)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def update(self, client: Motion) -> None:
        """Sync all collectors from the client's current status."""
        status = client.get_status()

        self._client_open.set(1 if status["open"] else 0)
        self._queue_depth.set(status["queue_depth"])
        self._queue_max.set(status["queue_max"])
        self._max_wait_ms.set(status["max_wait_ms"])

        for field, counter in self._counters.items():
            current = int(status[field])
            delta = current - self._last_seen[field]
            if delta > 0:
                counter.inc(delta)
            self._last_seen[field] = current

    def reset_counter_tracking(self) -> None:
        """
        Forget last seen totals, e.g. after switching to a new client.

        Does NOT reset the Prometheus counters themselves.
        """
        self._last_seen = dict.fromkeys(_COUNTER_FIELDS, 0)


# Counters are exported with a _total suffix by prometheus_client
REQUIRED_METRIC_NAMES: frozenset[str] = frozenset(
    {
        "motionsdk_client_open",
        "motionsdk_gate_queue_depth",
        "motionsdk_gate_queue_max",
        "motionsdk_gate_max_wait_ms",
        *(f"{name}_total" for name, _ in _COUNTER_FIELDS.values()),
    }
)
