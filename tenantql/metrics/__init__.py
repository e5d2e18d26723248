"""Metrics and monitoring for TenantQL."""

from .collector import MetricsCollector, QueryMetrics, BuildMetrics
from .reporters import ConsoleReporter, PrometheusReporter, JSONReporter

__all__ = [
    'MetricsCollector',
    'QueryMetrics',
    'BuildMetrics',
    'ConsoleReporter',
    'PrometheusReporter',
    'JSONReporter',
]
