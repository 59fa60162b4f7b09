"""
QueryTree Observability Layer

In-process metrics.
"""

from querytree.observability.metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    QueryTreeMetrics,
    get_querytree_metrics,
    get_registry,
    reset_metrics,
)

__all__ = [
    "MetricsRegistry",
    "Counter",
    "Histogram",
    "QueryTreeMetrics",
    "get_registry",
    "get_querytree_metrics",
    "reset_metrics",
]
