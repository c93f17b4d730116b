"""Infrastructure layer - cross-cutting concerns."""

from pluto_orm.infrastructure.config import Config, get_config
from pluto_orm.infrastructure.logging import setup_logging, get_logger
from pluto_orm.infrastructure.metrics import get_metrics, MetricsRegistry
from pluto_orm.infrastructure.tracing import setup_tracing, get_tracer, trace_span

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
