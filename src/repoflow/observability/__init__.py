"""repoflow observability -- Prometheus metrics."""

from repoflow.observability.metrics import MetricsRegistry

__all__ = ["MetricsRegistry"]
