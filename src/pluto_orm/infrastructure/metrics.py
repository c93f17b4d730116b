"""Prometheus metrics for the Pluto ORM."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    REGISTRY,
    CollectorRegistry,
)

from pluto_orm import __version__


class MetricsRegistry:
    """Registry of all ORM metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Query metrics
        self.queries_total = Counter(
            "pluto_queries_total",
            "Total number of executed queries",
            ["status"],  # success, error
            registry=self._registry,
        )

        self.query_latency_seconds = Histogram(
            "pluto_query_latency_seconds",
            "Query execution latency in seconds",
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
            registry=self._registry,
        )

        # Store metrics
        self.store_accesses_total = Counter(
            "pluto_store_accesses_total",
            "Total entity store accesses",
            ["kind"],  # scan, get
            registry=self._registry,
        )

        self.store_version = Gauge(
            "pluto_store_version",
            "Version of the latest published store snapshot",
            registry=self._registry,
        )

        # Loading metrics
        self.lazy_loads_total = Counter(
            "pluto_lazy_loads_total",
            "Relations resolved with one lookup per access",
            ["relation"],
            registry=self._registry,
        )

        self.eager_loads_total = Counter(
            "pluto_eager_loads_total",
            "Relations pre-fetched for a whole result set",
            ["relation"],
            registry=self._registry,
        )

        self.explicit_loads_total = Counter(
            "pluto_explicit_loads_total",
            "Relations loaded on request for one entity, optionally filtered",
            ["relation"],
            registry=self._registry,
        )

        # Change tracking metrics
        self.commits_total = Counter(
            "pluto_commits_total",
            "Total number of commits",
            ["status"],  # success, failure
            registry=self._registry,
        )

        self.committed_operations_total = Counter(
            "pluto_committed_operations_total",
            "Operations applied by successful commits",
            ["operation"],  # insert, update, delete
            registry=self._registry,
        )

        # Migration metrics
        self.migrations_total = Counter(
            "pluto_migrations_total",
            "Migrations applied or reverted",
            ["direction"],  # up, down
            registry=self._registry,
        )

        self.info = Info(
            "pluto_orm",
            "Pluto ORM information",
            registry=self._registry,
        )
        self.info.info({"version": __version__})


# Global metrics registry
_metrics: MetricsRegistry | None = None


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
