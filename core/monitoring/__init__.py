"""Monitoring primitives for the trade sync engine."""

from .prometheus_metrics import PrometheusMetricsCollector

__all__ = ["PrometheusMetricsCollector"]
