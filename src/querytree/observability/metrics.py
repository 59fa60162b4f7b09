"""
QueryTree Metrics

In-process metrics for monitoring tree combination, in particular the
data-integrity skips that are otherwise silent.
"""

import time
from collections import defaultdict
from threading import Lock
from typing import Any


def _labels_key(labels: dict[str, str] | None) -> str:
    """Generate key from labels."""
    if not labels:
        return ""
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


class Counter:
    """
    Monotonically increasing counter.

    Usage:
        counter = Counter("querytree_combinations_total", "Combined trees built")
        counter.inc()
        counter.inc(labels={"reason": "orphan_node"})
    """

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self._values: dict[str, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        """Increment counter."""
        if value < 0:
            raise ValueError(f"Counter {self.name} cannot decrease (got {value})")
        key = _labels_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get current value."""
        key = _labels_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def total(self) -> float:
        """Sum across all label combinations."""
        with self._lock:
            return sum(self._values.values())

    def values(self) -> dict[str, float]:
        """Get all values."""
        with self._lock:
            return dict(self._values)


class Histogram:
    """
    Distribution of observed values (latencies).

    Usage:
        with hist.time(labels={"source": "criteria"}):
            await fetch()
    """

    def __init__(self, name: str, description: str = "") -> None:
        self.name = name
        self.description = description
        self._sums: dict[str, float] = defaultdict(float)
        self._counts: dict[str, int] = defaultdict(int)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        key = _labels_key(labels)
        with self._lock:
            self._sums[key] += value
            self._counts[key] += 1

    def time(self, labels: dict[str, str] | None = None) -> "_HistogramTimer":
        """Context manager for timing operations."""
        return _HistogramTimer(self, labels)

    def get_count(self, labels: dict[str, str] | None = None) -> int:
        key = _labels_key(labels)
        with self._lock:
            return self._counts.get(key, 0)

    def get_mean(self, labels: dict[str, str] | None = None) -> float:
        key = _labels_key(labels)
        with self._lock:
            count = self._counts.get(key, 0)
            if count == 0:
                return 0.0
            return self._sums[key] / count


class _HistogramTimer:
    """Context manager for timing with histogram."""

    def __init__(self, histogram: Histogram, labels: dict[str, str] | None) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None

    def __enter__(self) -> "_HistogramTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        if self._start is not None:
            self._histogram.observe(time.perf_counter() - self._start, self._labels)


class MetricsRegistry:
    """
    Registry for all metrics.

    Usage:
        registry = MetricsRegistry()
        counter = registry.counter("querytree_combinations_total", "Combined trees built")
    """

    def __init__(self) -> None:
        self._metrics: dict[str, Counter | Histogram] = {}
        self._lock = Lock()

    def counter(self, name: str, description: str = "") -> Counter:
        """Get or create counter."""
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Counter(name, description)
            return self._metrics[name]  # type: ignore

    def histogram(self, name: str, description: str = "") -> Histogram:
        """Get or create histogram."""
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = Histogram(name, description)
            return self._metrics[name]  # type: ignore

    def get_all(self) -> dict[str, Any]:
        """Get all metric values."""
        result: dict[str, Any] = {}
        with self._lock:
            metrics = list(self._metrics.items())
        for name, metric in metrics:
            if isinstance(metric, Counter):
                result[name] = metric.values()
            else:
                result[name] = {"count": metric.get_count(), "mean": metric.get_mean()}
        return result


_registry: MetricsRegistry | None = None


def get_registry() -> MetricsRegistry:
    """Get global metrics registry."""
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


def reset_metrics() -> None:
    """Reset global metrics."""
    global _registry
    _registry = None


class QueryTreeMetrics:
    """Pre-defined QueryTree metrics."""

    def __init__(self, registry: MetricsRegistry | None = None) -> None:
        self._registry = registry or get_registry()

    @property
    def combinations(self) -> Counter:
        """Combination runs, labelled by outcome (combined, empty, failed)."""
        return self._registry.counter(
            "querytree_combinations_total", "Project query combinations"
        )

    @property
    def integrity_skips(self) -> Counter:
        """Nodes skipped because metadata and criteria storage disagree."""
        return self._registry.counter(
            "querytree_integrity_skips_total", "Integrity skips by reason"
        )

    @property
    def fetch_latency(self) -> Histogram:
        """Upstream fetch latency, labelled by source (metadata, criteria)."""
        return self._registry.histogram(
            "querytree_fetch_latency_seconds", "Upstream fetch latency"
        )


def get_querytree_metrics() -> QueryTreeMetrics:
    """Get QueryTree metrics bound to the global registry."""
    return QueryTreeMetrics()
