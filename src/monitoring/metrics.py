"""
Metrics collection for the royalty ledger.

A small, thread-safe registry of:
- Counters: payments received, distributions, votes, errors by kind
- Gauges: point-in-time values (active HTTP requests)
- Histograms: operation and request latency

Exported as a dict (``get_all``) or in Prometheus text format.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

METRIC_PREFIX = "collab_royalty"


@dataclass
class HistogramBucket:
    """A histogram bucket for tracking value distributions."""

    le: float  # Less than or equal to
    count: int = 0


@dataclass
class Histogram:
    """Latency histogram with millisecond buckets."""

    name: str
    buckets: list[HistogramBucket] = field(default_factory=list)
    sum: float = 0.0
    count: int = 0

    def __post_init__(self):
        if not self.buckets:
            default_bounds = [1, 5, 10, 25, 50, 100, 250, 500, 1000, 5000]
            self.buckets = [HistogramBucket(le=b) for b in default_bounds]
            self.buckets.append(HistogramBucket(le=float("inf")))

    def observe(self, value: float) -> None:
        """Record an observation."""
        self.sum += value
        self.count += 1
        for bucket in self.buckets:
            if value <= bucket.le:
                bucket.count += 1


class MetricsCollector:
    """Thread-safe metrics collector with optional labels."""

    def __init__(self, prefix: str = METRIC_PREFIX):
        self.prefix = prefix
        self._lock = threading.RLock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._gauges: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)
        self._start_time = time.time()

    @staticmethod
    def _labels_key(labels: dict[str, str] | None) -> str:
        """Convert labels dict to a hashable key."""
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))

    # Counters

    def increment(self, name: str, value: int = 1, labels: dict[str, str] | None = None) -> None:
        """Increment a counter."""
        with self._lock:
            self._counters[name][self._labels_key(labels)] += value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Get current counter value."""
        with self._lock:
            return self._counters[name].get(self._labels_key(labels), 0)

    # Gauges

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Set a gauge value."""
        with self._lock:
            self._gauges[name][self._labels_key(labels)] = value

    def increment_gauge(self, name: str, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        """Increment a gauge value."""
        with self._lock:
            self._gauges[name][self._labels_key(labels)] += value

    def decrement_gauge(self, name: str, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        """Decrement a gauge value."""
        with self._lock:
            self._gauges[name][self._labels_key(labels)] -= value

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Get current gauge value."""
        with self._lock:
            return self._gauges[name].get(self._labels_key(labels), 0.0)

    # Histograms

    def timing(self, name: str, value_ms: float, labels: dict[str, str] | None = None) -> None:
        """Record a timing observation in milliseconds."""
        with self._lock:
            key = self._labels_key(labels)
            if key not in self._histograms[name]:
                self._histograms[name][key] = Histogram(name=name)
            self._histograms[name][key].observe(value_ms)

    @contextmanager
    def timer(self, name: str, labels: dict[str, str] | None = None):
        """Time a code block."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timing(name, (time.perf_counter() - start) * 1000, labels)

    # Export

    def get_all(self) -> dict[str, Any]:
        """All metrics as a dictionary."""
        with self._lock:
            result = {
                "uptime_seconds": time.time() - self._start_time,
                "counters": {},
                "gauges": {},
                "histograms": {},
            }
            for name, values in self._counters.items():
                result["counters"][name] = values[""] if set(values) == {""} else dict(values)
            for name, values in self._gauges.items():
                result["gauges"][name] = values[""] if set(values) == {""} else dict(values)
            for name, histograms in self._histograms.items():
                result["histograms"][name] = {
                    (key or "_total"): {
                        "count": hist.count,
                        "sum": hist.sum,
                        "avg": hist.sum / hist.count if hist.count else 0,
                    }
                    for key, hist in histograms.items()
                }
            return result

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        with self._lock:
            uptime_name = f"{self.prefix}_uptime_seconds"
            lines.append(f"# HELP {uptime_name} Time since application start")
            lines.append(f"# TYPE {uptime_name} gauge")
            lines.append(f"{uptime_name} {time.time() - self._start_time:.2f}")
            lines.append("")

            for kind, store in (("counter", self._counters), ("gauge", self._gauges)):
                for name, values in store.items():
                    metric_name = f"{self.prefix}_{name}"
                    lines.append(f"# TYPE {metric_name} {kind}")
                    for key, value in values.items():
                        lines.append(f"{metric_name}{{{key}}} {value}" if key else f"{metric_name} {value}")
                    lines.append("")

            for name, histograms in self._histograms.items():
                metric_name = f"{self.prefix}_{name}"
                lines.append(f"# TYPE {metric_name} histogram")
                for key, hist in histograms.items():
                    sep = f"{key}," if key else ""
                    for bucket in hist.buckets:
                        le_val = "+Inf" if bucket.le == float("inf") else bucket.le
                        lines.append(f'{metric_name}_bucket{{{sep}le="{le_val}"}} {bucket.count}')
                    suffix = f"{{{key}}}" if key else ""
                    lines.append(f"{metric_name}_sum{suffix} {hist.sum:.2f}")
                    lines.append(f"{metric_name}_count{suffix} {hist.count}")
                lines.append("")

        return "\n".join(lines)

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._start_time = time.time()


# Global metrics instance
metrics = MetricsCollector()
