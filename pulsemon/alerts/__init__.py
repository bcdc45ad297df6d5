"""Alert definitions, evaluation engine, persistence, and notification."""

from pulsemon.alerts.engine import AlertEngine
from pulsemon.alerts.exceptions import (
    AlertError,
    AlertNotFoundError,
    AlertStoreError,
    InvalidAlertUpdateError,
)
from pulsemon.alerts.formatters import history_message, render_notification
from pulsemon.alerts.notifiers import LogNotifier, Notifier, RoutingNotifier
from pulsemon.alerts.store import (
    AlertHistoryEntry,
    AlertStore,
    InMemoryAlertStore,
    YamlAlertStore,
)

__all__ = [
    "AlertEngine",
    "AlertError",
    "AlertHistoryEntry",
    "AlertNotFoundError",
    "AlertStore",
    "AlertStoreError",
    "InMemoryAlertStore",
    "InvalidAlertUpdateError",
    "LogNotifier",
    "Notifier",
    "RoutingNotifier",
    "YamlAlertStore",
    "history_message",
    "render_notification",
]
