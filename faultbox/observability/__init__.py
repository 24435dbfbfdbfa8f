"""Observability module for logging and metrics."""

from faultbox.observability.logging_config import setup_logging
from faultbox.observability.metrics import MetricsCollector, metrics_collector
from faultbox.observability.middleware import ObservabilityMiddleware

__all__ = [
    "setup_logging",
    "MetricsCollector",
    "metrics_collector",
    "ObservabilityMiddleware",
]
