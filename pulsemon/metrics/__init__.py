"""Metrics registry, instruments, Prometheus exporter, and performance aggregation."""

from pulsemon.metrics.exceptions import InvalidWindowError, MetricsError
from pulsemon.metrics.exporter import CONTENT_TYPE, PrometheusExporter
from pulsemon.metrics.instruments import Counter, Gauge, Histogram, Summary
from pulsemon.metrics.performance import PerformanceAggregator, percentile
from pulsemon.metrics.registry import DEFAULT_SERIES_CAP, MetricRegistry

__all__ = [
    "CONTENT_TYPE",
    "Counter",
    "DEFAULT_SERIES_CAP",
    "Gauge",
    "Histogram",
    "InvalidWindowError",
    "MetricRegistry",
    "MetricsError",
    "PerformanceAggregator",
    "PrometheusExporter",
    "Summary",
    "percentile",
]
