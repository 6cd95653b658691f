"""Monitoring and metrics."""

from capweight.monitoring.metrics import MetricsCollector

__all__ = ["MetricsCollector"]
