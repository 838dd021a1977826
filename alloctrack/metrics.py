"""Application metrics.

Counters and histograms kept in-process and exposed in Prometheus text
format:
- HTTP request counts and latencies
- Committed allocation changes by outcome
- Capacity rejections and storage conflicts
- Resource lifecycle events
"""

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


@dataclass
class Histogram:
    """Cumulative-bucket histogram for latencies."""

    buckets: tuple[float, ...] = LATENCY_BUCKETS
    counts: dict[float, int] = field(default_factory=lambda: defaultdict(int))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float) -> None:
        self.sum += value
        self.count += 1
        for bucket in self.buckets:
            if value <= bucket:
                self.counts[bucket] += 1

    def to_prometheus(self, name: str, labels: str = "") -> str:
        extra = f", {labels}" if labels else ""
        label_str = f"{{{labels}}}" if labels else ""
        lines = [
            f'{name}_bucket{{le="{bucket}"{extra}}} {self.counts[bucket]}'
            for bucket in self.buckets
        ]
        lines.append(f'{name}_bucket{{le="+Inf"{extra}}} {self.count}')
        lines.append(f"{name}_sum{label_str} {self.sum}")
        lines.append(f"{name}_count{label_str} {self.count}")
        return "\n".join(lines)


class MetricsRegistry:
    """Thread-safe registry of counters and histograms."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)

    def inc_counter(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        key = self._labels_to_key(labels)
        with self._lock:
            self._counters[name][key] += value

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        key = self._labels_to_key(labels)
        with self._lock:
            histogram = self._histograms[name].setdefault(key, Histogram())
            histogram.observe(value)

    def counter_value(self, name: str, labels: dict[str, str] | None = None) -> int:
        with self._lock:
            return self._counters.get(name, {}).get(self._labels_to_key(labels), 0)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))

    def to_prometheus(self) -> str:
        """Render every metric in Prometheus text exposition format."""
        lines = []
        with self._lock:
            for name, values in self._counters.items():
                lines.append(f"# TYPE {name} counter")
                for key, value in values.items():
                    label_str = f"{{{key}}}" if key else ""
                    lines.append(f"{name}{label_str} {value}")
                lines.append("")
            for name, histograms in self._histograms.items():
                lines.append(f"# TYPE {name} histogram")
                for key, histogram in histograms.items():
                    lines.append(histogram.to_prometheus(name, key))
                lines.append("")
        return "\n".join(lines)

    def get_stats(self) -> dict[str, Any]:
        """Metrics as a dictionary, for the JSON endpoint."""
        with self._lock:
            return {
                "counters": {k: dict(v) for k, v in self._counters.items()},
                "histograms": {
                    k: {lk: {"count": h.count, "sum": h.sum} for lk, h in v.items()}
                    for k, v in self._histograms.items()
                },
            }


metrics = MetricsRegistry()


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    labels = {"method": method, "path": path, "status": str(status_code)}
    metrics.inc_counter("alloctrack_http_requests_total", labels)
    metrics.observe_histogram("alloctrack_http_request_duration_seconds", duration, labels)


def record_allocation_change(outcome: str) -> None:
    metrics.inc_counter("alloctrack_allocation_changes_total", {"outcome": outcome})


def record_capacity_rejection(operation: str) -> None:
    metrics.inc_counter("alloctrack_capacity_rejections_total", {"operation": operation})


def record_conflict(operation: str) -> None:
    metrics.inc_counter("alloctrack_storage_conflicts_total", {"operation": operation})


def record_resource_event(event: str) -> None:
    metrics.inc_counter("alloctrack_resource_events_total", {"event": event})
