"""Convenience factory for wiring the monitoring stack from settings."""

from __future__ import annotations

from pulsemon.alerts.notifiers import LogNotifier, Notifier, RoutingNotifier
from pulsemon.alerts.store import AlertStore, InMemoryAlertStore, YamlAlertStore
from pulsemon.core.config import Settings, StoreConfig
from pulsemon.monitor.stats import SystemStatsProvider
from pulsemon.monitor.system import MonitoringSystem


def create_alert_store(config: StoreConfig) -> AlertStore:
    """YAML-backed store when a path is configured, otherwise in-memory."""
    if config.path:
        return YamlAlertStore(config.path, config.history_path or None)
    return InMemoryAlertStore()


def create_monitoring_system(
    settings: Settings,
    notifier: Notifier | None = None,
    stats_provider: SystemStatsProvider | None = None,
) -> MonitoringSystem:
    """Build a MonitoringSystem with the store and notifier the settings call for.

    Without an explicit notifier every action type is routed to the
    notification log.
    """
    return MonitoringSystem(
        settings,
        store=create_alert_store(settings.store),
        notifier=notifier or RoutingNotifier(default=LogNotifier()),
        stats_provider=stats_provider,
    )
