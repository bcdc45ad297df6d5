"""PerformanceAggregator — request latency, throughput, error rate, resource summary.

Reads registry snapshots on demand:
- Response-time percentiles over every retained duration observation
- Throughput over the trailing ``window_hours``
- Error rate from ``status_code`` labels on request points
- Latest system/database/cache gauge values
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable

import structlog

from pulsemon.core.types import (
    CacheMetrics,
    DatabaseMetrics,
    ErrorRate,
    MetricPoint,
    PerformanceMetrics,
    ResponseTime,
    SystemHealth,
    Throughput,
)
from pulsemon.metrics import names
from pulsemon.metrics.exceptions import InvalidWindowError
from pulsemon.metrics.registry import MetricRegistry

logger = structlog.get_logger(__name__)


def percentile(sorted_values: list[float], p: float) -> float:
    """Nearest-rank percentile of an ascending list; 0.0 when empty."""
    if not sorted_values:
        return 0.0
    n = len(sorted_values)
    index = math.ceil(n * p / 100) - 1
    return sorted_values[max(0, min(index, n - 1))]


def _for_tenant(points: list[MetricPoint], tenant_id: str | None) -> list[MetricPoint]:
    if tenant_id is None:
        return points
    return [p for p in points if p.labels.get("tenant_id") == tenant_id]


def _is_error(point: MetricPoint) -> bool:
    try:
        return int(point.labels.get("status_code", "")) >= 400
    except ValueError:
        return False


class PerformanceAggregator:
    """Derives a :class:`PerformanceMetrics` summary from registry contents."""

    def __init__(
        self,
        registry: MetricRegistry,
        clock: Callable[[], float] = time.time,
        started_at: float | None = None,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._started_at = started_at if started_at is not None else clock()

    def summarize(
        self,
        tenant_id: str | None = None,
        window_hours: float = 24,
    ) -> PerformanceMetrics:
        """Summarise request and resource metrics.

        Raises:
            InvalidWindowError: ``window_hours`` is negative or not finite.
        """
        if not math.isfinite(window_hours) or window_hours < 0:
            raise InvalidWindowError(f"window_hours must be >= 0, got {window_hours}")

        try:
            return self._summarize(tenant_id, window_hours)
        except Exception:
            logger.exception("performance_summary_error", tenant_id=tenant_id)
            return PerformanceMetrics()

    def _summarize(self, tenant_id: str | None, window_hours: float) -> PerformanceMetrics:
        now = self._clock()
        requests = _for_tenant(self._registry.query(names.HTTP_REQUESTS_TOTAL), tenant_id)
        durations = _for_tenant(
            self._registry.query(names.HTTP_REQUEST_DURATION_SECONDS), tenant_id
        )

        return PerformanceMetrics(
            response_time=self._response_time(durations),
            throughput=self._throughput(requests, window_hours, now),
            error_rate=self._error_rate(requests),
            system_health=SystemHealth(
                cpu_usage=self._latest(names.SYSTEM_CPU_USAGE_PERCENT),
                memory_usage=self._latest(names.SYSTEM_MEMORY_USAGE_BYTES),
                disk_usage=self._latest(names.SYSTEM_DISK_USAGE_PERCENT),
                uptime=max(0.0, now - self._started_at),
            ),
            database_metrics=DatabaseMetrics(
                connection_count=self._latest(names.DATABASE_CONNECTIONS_ACTIVE),
                query_time=self._latest(names.DATABASE_QUERY_TIME_MS),
                slow_queries=self._latest(names.DATABASE_SLOW_QUERIES),
            ),
            cache_metrics=self._cache_metrics(),
        )

    # ── Components ──────────────────────────────────────────────

    @staticmethod
    def _response_time(durations: list[MetricPoint]) -> ResponseTime:
        values = sorted(
            ms for ms in (p.value * 1000 for p in durations) if math.isfinite(ms)
        )
        if not values:
            return ResponseTime()
        return ResponseTime(
            avg=sum(values) / len(values),
            p50=percentile(values, 50),
            p95=percentile(values, 95),
            p99=percentile(values, 99),
        )

    @staticmethod
    def _throughput(
        requests: list[MetricPoint], window_hours: float, now: float
    ) -> Throughput:
        window_secs = window_hours * 3600
        if window_secs <= 0:
            return Throughput()
        recent = sum(1 for p in requests if p.timestamp > now - window_secs)
        return Throughput(
            requests_per_second=recent / window_secs,
            requests_per_minute=recent / (window_hours * 60),
        )

    @staticmethod
    def _error_rate(requests: list[MetricPoint]) -> ErrorRate:
        if not requests:
            return ErrorRate()
        errors = sum(1 for p in requests if _is_error(p))
        return ErrorRate(percentage=errors / len(requests) * 100, count=errors)

    def _cache_metrics(self) -> CacheMetrics:
        hit = self._finite_latest(names.CACHE_HIT_RATE_PERCENT)
        return CacheMetrics(
            hit_rate=hit if hit is not None else 0.0,
            miss_rate=100 - hit if hit is not None else 0.0,
            eviction_rate=self._latest(names.CACHE_EVICTION_RATE),
        )

    def _latest(self, name: str) -> float:
        value = self._finite_latest(name)
        return value if value is not None else 0.0

    def _finite_latest(self, name: str) -> float | None:
        point = self._registry.latest(name)
        if point is None or not math.isfinite(point.value):
            return None
        return point.value
