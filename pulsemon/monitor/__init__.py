"""Monitoring service — stats collection, system facade, and HTTP surface."""

from pulsemon.monitor.factory import create_alert_store, create_monitoring_system
from pulsemon.monitor.scheduler import CollectionScheduler
from pulsemon.monitor.stats import ProcessStatsProvider, SystemStatsProvider
from pulsemon.monitor.system import MonitoringSystem
from pulsemon.monitor.web import create_web_app, start_web_server

__all__ = [
    "CollectionScheduler",
    "MonitoringSystem",
    "ProcessStatsProvider",
    "SystemStatsProvider",
    "create_alert_store",
    "create_monitoring_system",
    "create_web_app",
    "start_web_server",
]
