"""MonitoringSystem — wires registry, instruments, aggregation, alerting, and collection."""

from __future__ import annotations

import datetime
import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from pulsemon.alerts.engine import AlertEngine
from pulsemon.alerts.notifiers import LogNotifier, Notifier
from pulsemon.alerts.store import AlertStore, InMemoryAlertStore
from pulsemon.core.config import Settings
from pulsemon.core.types import PerformanceMetrics
from pulsemon.metrics import names
from pulsemon.metrics.exporter import PrometheusExporter
from pulsemon.metrics.instruments import Counter, Gauge, Histogram
from pulsemon.metrics.performance import PerformanceAggregator
from pulsemon.metrics.registry import MetricRegistry
from pulsemon.monitor.scheduler import CollectionScheduler
from pulsemon.monitor.stats import ProcessStatsProvider, SystemStatsProvider, memory_snapshot

logger = structlog.get_logger(__name__)


class MonitoringSystem:
    """Process-wide monitoring facade.

    Request handlers call :meth:`record_http_request` inline; the collection
    scheduler and alert engine run on their own timers between
    :meth:`start` and :meth:`stop`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: MetricRegistry | None = None,
        store: AlertStore | None = None,
        notifier: Notifier | None = None,
        stats_provider: SystemStatsProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or Settings()
        self._clock = clock
        self._started_at = clock()
        self._enabled = set(self.settings.collection.enabled_metrics)
        self._notifier = notifier or LogNotifier()

        self.registry = registry or MetricRegistry(self.settings.collection.series_cap)

        self.http_requests_total = Counter(
            names.HTTP_REQUESTS_TOTAL,
            self.registry,
            names.HELP[names.HTTP_REQUESTS_TOTAL],
            clock,
        )
        self.http_request_duration = Histogram(
            names.HTTP_REQUEST_DURATION_SECONDS,
            self.registry,
            names.HELP[names.HTTP_REQUEST_DURATION_SECONDS],
            clock,
        )
        self.errors_total = Counter(
            names.ERRORS_TOTAL,
            self.registry,
            names.HELP[names.ERRORS_TOTAL],
            clock,
        )
        self._custom_gauges: dict[str, Gauge] = {}

        self.exporter = PrometheusExporter(
            self.registry, per_label_set=self.settings.export.per_label_set
        )
        self.performance = PerformanceAggregator(
            self.registry, clock=clock, started_at=self._started_at
        )
        self.alerts = AlertEngine(
            self.registry,
            store or InMemoryAlertStore(),
            self._notifier,
            check_interval_secs=self.settings.alerting.check_interval_secs,
            dispatch_timeout_secs=self.settings.alerting.dispatch_timeout_secs,
            default_severity=self.settings.alerting.default_severity,
            clock=clock,
        )
        self.collector = CollectionScheduler(
            self.registry,
            stats_provider or ProcessStatsProvider(),
            interval_secs=self.settings.collection.interval_secs,
            enabled_groups=self._enabled & {"system", "database", "cache"},
            clock=clock,
        )

    # ── Write path ──────────────────────────────────────────────

    def record_http_request(
        self,
        method: str,
        route: str,
        status_code: int,
        duration_ms: float,
        tenant_id: str | None = None,
    ) -> None:
        """Record one handled request (count, latency, and error if >= 400)."""
        if "http" not in self._enabled:
            return
        tenant = tenant_id or "unknown"
        self.http_requests_total.inc({
            "method": method,
            "route": route,
            "status_code": str(status_code),
            "tenant_id": tenant,
        })
        self.http_request_duration.observe(duration_ms / 1000, {
            "method": method,
            "route": route,
            "tenant_id": tenant,
        })
        if status_code >= 400:
            self.errors_total.inc({
                "type": "http_error",
                "severity": "high" if status_code >= 500 else "medium",
                "tenant_id": tenant,
            })

    def record_custom_metric(
        self,
        name: str,
        value: float,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        """Record a business gauge under ``custom_<name>``."""
        if "custom" not in self._enabled or not name:
            return
        gauge = self._custom_gauges.get(name)
        if gauge is None:
            gauge = Gauge(f"{names.CUSTOM_PREFIX}{name}", self.registry, clock=self._clock)
            self._custom_gauges[name] = gauge
        gauge.set(value, labels)

    # ── Read path ───────────────────────────────────────────────

    def export_prometheus(self) -> str:
        return self.exporter.export()

    def performance_metrics(
        self,
        tenant_id: str | None = None,
        hours: float = 24,
    ) -> PerformanceMetrics:
        return self.performance.summarize(tenant_id, hours)

    def uptime(self) -> float:
        return max(0.0, self._clock() - self._started_at)

    def health(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "uptime": self.uptime(),
            "memory": memory_snapshot(),
            "version": self.settings.version,
        }

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        await self.alerts.load()
        await self.collector.start()
        if self.settings.alerting.enabled:
            await self.alerts.start()
        logger.info(
            "monitoring_started",
            collection_interval=self.settings.collection.interval_secs,
            alerting=self.settings.alerting.enabled,
            alerts=len(self.alerts.alerts),
        )

    async def stop(self) -> None:
        await self.collector.stop()
        await self.alerts.stop()
        try:
            await self._notifier.close()
        except Exception:
            logger.exception("notifier_close_error")
        logger.info("monitoring_stopped", uptime=self.uptime())
