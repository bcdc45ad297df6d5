"""CollectionScheduler — samples system stats into gauges on an interval."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from pulsemon.core.periodic import PeriodicTask
from pulsemon.core.types import SystemStats
from pulsemon.metrics import names
from pulsemon.metrics.instruments import Gauge
from pulsemon.metrics.registry import MetricRegistry
from pulsemon.monitor.stats import SystemStatsProvider

logger = structlog.get_logger(__name__)

# SystemStats field → (metric group, gauge name)
_FIELD_GAUGES: dict[str, tuple[str, str]] = {
    "cpu_percent": ("system", names.SYSTEM_CPU_USAGE_PERCENT),
    "memory_bytes": ("system", names.SYSTEM_MEMORY_USAGE_BYTES),
    "disk_percent": ("system", names.SYSTEM_DISK_USAGE_PERCENT),
    "active_users": ("system", names.ACTIVE_USERS_TOTAL),
    "active_db_connections": ("database", names.DATABASE_CONNECTIONS_ACTIVE),
    "db_query_time_ms": ("database", names.DATABASE_QUERY_TIME_MS),
    "db_slow_queries": ("database", names.DATABASE_SLOW_QUERIES),
    "cache_hit_rate_percent": ("cache", names.CACHE_HIT_RATE_PERCENT),
    "cache_eviction_rate": ("cache", names.CACHE_EVICTION_RATE),
}


class CollectionScheduler:
    """Polls a :class:`SystemStatsProvider` and writes each reading to its gauge.

    Fields whose group is not in ``enabled_groups`` are skipped, as are
    fields the provider left as ``None``. Provider failures are logged and
    the next tick runs as usual.

    Usage::

        scheduler = CollectionScheduler(registry, ProcessStatsProvider())
        await scheduler.start()
        # ...
        await scheduler.stop()
    """

    def __init__(
        self,
        registry: MetricRegistry,
        provider: SystemStatsProvider,
        interval_secs: float = 30.0,
        enabled_groups: set[str] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._enabled_groups = (
            set(enabled_groups) if enabled_groups is not None
            else {"system", "database", "cache"}
        )
        self._gauges: dict[str, Gauge] = {
            field: Gauge(metric, registry, names.HELP.get(metric, ""), clock)
            for field, (group, metric) in _FIELD_GAUGES.items()
            if group in self._enabled_groups
        }
        self._task = PeriodicTask("collection", self.collect_once, interval_secs)
        self._last_stats: SystemStats | None = None

    @property
    def running(self) -> bool:
        return self._task.running

    @property
    def last_stats(self) -> SystemStats | None:
        """Most recent successful sample."""
        return self._last_stats

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def tick(self) -> bool:
        """Collect now. Returns False if a collection was already in flight."""
        return await self._task.run_once()

    async def collect_once(self) -> None:
        try:
            stats = await self._provider.sample()
        except Exception:
            logger.exception("stats_provider_error", provider=type(self._provider).__name__)
            return

        written = 0
        for field, gauge in self._gauges.items():
            value = getattr(stats, field)
            if value is None:
                continue
            gauge.set(value)
            written += 1

        self._last_stats = stats
        logger.debug("system_metrics_collected", gauges=written)
