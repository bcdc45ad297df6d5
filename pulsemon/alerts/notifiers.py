"""Alert notifiers — the dispatch contract plus logging and routing implementations."""

from __future__ import annotations

import abc

import structlog

from pulsemon.alerts.formatters import render_notification
from pulsemon.core.types import ActionType, Alert, AlertAction

# Dedicated structured logger for delivered notifications.
notification_logger = structlog.get_logger("alert_notifications")

logger = structlog.get_logger(__name__)


class Notifier(abc.ABC):
    """Delivers one alert action."""

    @abc.abstractmethod
    async def dispatch(self, action: AlertAction, alert: Alert) -> bool:
        """Deliver ``alert`` through ``action``. Returns True on success."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class LogNotifier(Notifier):
    """Writes the rendered notification to the notification log."""

    async def dispatch(self, action: AlertAction, alert: Alert) -> bool:
        notification_logger.warning(
            "alert_notification",
            channel=action.type.value,
            target=action.target,
            alert_id=alert.id,
            severity=alert.severity.value,
            text=render_notification(alert, action),
        )
        return True


class RoutingNotifier(Notifier):
    """Routes each action to the notifier registered for its type.

    Types without a route go to ``default``; with no default the dispatch
    fails.
    """

    def __init__(
        self,
        routes: dict[ActionType, Notifier] | None = None,
        default: Notifier | None = None,
    ) -> None:
        self._routes: dict[ActionType, Notifier] = dict(routes or {})
        self._default = default

    def route_for(self, action_type: ActionType) -> Notifier | None:
        return self._routes.get(action_type, self._default)

    async def dispatch(self, action: AlertAction, alert: Alert) -> bool:
        notifier = self.route_for(action.type)
        if notifier is None:
            logger.warning("notifier_route_missing", channel=action.type.value, alert_id=alert.id)
            return False
        return await notifier.dispatch(action, alert)

    async def close(self) -> None:
        seen: set[int] = set()
        for notifier in [*self._routes.values(), self._default]:
            if notifier is None or id(notifier) in seen:
                continue
            seen.add(id(notifier))
            try:
                await notifier.close()
            except Exception:
                logger.exception("notifier_close_error", notifier=type(notifier).__name__)
