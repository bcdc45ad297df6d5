"""Core module — config, types, logging, periodic tasks."""

from pulsemon.core.config import Settings, get_settings, load_settings, reset_settings
from pulsemon.core.logging import setup_logging
from pulsemon.core.periodic import PeriodicTask
from pulsemon.core.types import (
    ActionType,
    ActiveAlertState,
    Alert,
    AlertAction,
    AlertCondition,
    AlertDraft,
    ComparisonOperator,
    HistoryAction,
    MetricKind,
    MetricPoint,
    PerformanceMetrics,
    Severity,
    SystemStats,
)

__all__ = [
    "ActionType",
    "ActiveAlertState",
    "Alert",
    "AlertAction",
    "AlertCondition",
    "AlertDraft",
    "ComparisonOperator",
    "HistoryAction",
    "MetricKind",
    "MetricPoint",
    "PerformanceMetrics",
    "PeriodicTask",
    "Settings",
    "Severity",
    "SystemStats",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
