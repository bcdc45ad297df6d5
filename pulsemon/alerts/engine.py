"""AlertEngine — periodic evaluation of alert conditions against the registry.

Each active alert is either Inactive (no firing record) or Firing. A tick
moves an alert Inactive → Firing when any of its conditions holds, which
dispatches every action and appends a "triggered" history event, and
Firing → Inactive when none holds, which appends a "resolved" event. A
condition that stays true or false across ticks changes nothing, so an alert
is dispatched once per firing episode.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog
from pydantic.alias_generators import to_snake

from pulsemon.alerts.exceptions import (
    AlertNotFoundError,
    AlertStoreError,
    InvalidAlertUpdateError,
)
from pulsemon.alerts.formatters import history_message
from pulsemon.alerts.notifiers import Notifier
from pulsemon.alerts.store import AlertStore
from pulsemon.core.periodic import PeriodicTask
from pulsemon.core.types import (
    ActiveAlertState,
    Alert,
    AlertAction,
    AlertCondition,
    AlertDraft,
    HistoryAction,
    Severity,
)
from pulsemon.metrics.registry import MetricRegistry

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset({
    "name",
    "description",
    "severity",
    "conditions",
    "actions",
    "is_active",
})


class AlertEngine:
    """Owns alert definitions and their firing state.

    Usage::

        engine = AlertEngine(registry, store, notifier, check_interval_secs=60)
        await engine.load()
        await engine.start()

        alert = await engine.create_alert(AlertDraft(name="High CPU", ...))

        await engine.stop()
    """

    def __init__(
        self,
        registry: MetricRegistry,
        store: AlertStore,
        notifier: Notifier,
        *,
        check_interval_secs: float = 60.0,
        dispatch_timeout_secs: float = 10.0,
        default_severity: Severity = Severity.MEDIUM,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._store = store
        self._notifier = notifier
        self._dispatch_timeout_secs = dispatch_timeout_secs
        self._default_severity = default_severity
        self._clock = clock
        self._alerts: dict[str, Alert] = {}
        self._active: dict[str, ActiveAlertState] = {}
        self._task = PeriodicTask("alert_evaluation", self.check_alerts, check_interval_secs)

    # ── Properties ──────────────────────────────────────────────

    @property
    def alerts(self) -> dict[str, Alert]:
        """Read-only copy of loaded alert definitions."""
        return dict(self._alerts)

    @property
    def active_alerts(self) -> dict[str, ActiveAlertState]:
        """Read-only copy of firing records keyed by alert id."""
        return dict(self._active)

    @property
    def running(self) -> bool:
        return self._task.running

    def is_firing(self, alert_id: str) -> bool:
        return alert_id in self._active

    # ── Lifecycle ───────────────────────────────────────────────

    async def load(self) -> int:
        """Load active alert definitions from the store. Returns the count loaded."""
        try:
            alerts = await self._store.load_active_alerts()
        except Exception:
            logger.exception("alert_load_error")
            return 0
        for alert in alerts:
            self._alerts[alert.id] = alert
        logger.info("alerts_loaded", count=len(alerts))
        return len(alerts)

    async def start(self) -> None:
        await self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def tick(self) -> bool:
        """Run one evaluation now. Returns False if an evaluation was already in flight."""
        return await self._task.run_once()

    # ── Administration ──────────────────────────────────────────

    async def create_alert(self, draft: AlertDraft | dict[str, Any]) -> Alert:
        """Persist and register a new alert.

        Raises:
            AlertStoreError: The store rejected the insert.
        """
        if not isinstance(draft, AlertDraft):
            draft = AlertDraft.model_validate(draft)
        data = draft.model_dump()
        data["severity"] = draft.severity or self._default_severity
        alert = Alert.model_validate(data)

        try:
            await self._store.insert(alert)
        except Exception as exc:
            logger.exception("alert_create_failed", name=alert.name)
            raise AlertStoreError(f"failed to create alert {alert.name!r}") from exc

        self._alerts[alert.id] = alert
        logger.info("alert_created", alert_id=alert.id, name=alert.name)
        return alert

    async def update_alert(self, alert_id: str, updates: dict[str, Any]) -> Alert:
        """Apply ``updates`` to an alert and persist them.

        Keys may be snake_case or camelCase (``isActive``). Disabling a
        firing alert drops its firing record without a "resolved" event.

        Raises:
            AlertNotFoundError: No loaded alert has this id.
            InvalidAlertUpdateError: A key is not an updatable field.
            AlertStoreError: The store rejected the update.
        """
        existing = self._alerts.get(alert_id)
        if existing is None:
            raise AlertNotFoundError(alert_id)

        fields = {to_snake(k): v for k, v in updates.items()}
        rejected = sorted(k for k in updates if to_snake(k) not in _UPDATABLE_FIELDS)
        if rejected:
            raise InvalidAlertUpdateError(rejected)

        updated = Alert.model_validate({**existing.model_dump(), **fields})

        try:
            await self._store.update(
                alert_id, updated.model_dump(mode="json", include=set(fields))
            )
        except Exception as exc:
            logger.exception("alert_update_failed", alert_id=alert_id)
            raise AlertStoreError(f"failed to update alert {alert_id}") from exc

        self._alerts[alert_id] = updated
        if not updated.is_active:
            self._active.pop(alert_id, None)
        logger.info("alert_updated", alert_id=alert_id, fields=sorted(fields))
        return updated

    async def delete_alert(self, alert_id: str) -> None:
        """Remove an alert and any firing record for it.

        Raises:
            AlertStoreError: The store rejected the delete.
        """
        try:
            await self._store.delete(alert_id)
        except Exception as exc:
            logger.exception("alert_delete_failed", alert_id=alert_id)
            raise AlertStoreError(f"failed to delete alert {alert_id}") from exc

        self._alerts.pop(alert_id, None)
        self._active.pop(alert_id, None)
        logger.info("alert_deleted", alert_id=alert_id)

    # ── Evaluation ──────────────────────────────────────────────

    def evaluate(self, conditions: list[AlertCondition], now: float | None = None) -> bool:
        """True if any condition holds (OR-combined).

        A condition whose metric has no points inside its window does not
        match.
        """
        now = self._clock() if now is None else now
        for condition in conditions:
            try:
                if self._condition_met(condition, now):
                    return True
            except Exception:
                logger.warning("alert_condition_error", metric=condition.metric, exc_info=True)
        return False

    def _condition_met(self, condition: AlertCondition, now: float) -> bool:
        window_start = now - condition.duration * 60
        values = [
            p.value
            for p in self._registry.query(condition.metric)
            if p.timestamp > window_start
        ]
        if not values:
            return False
        average = sum(values) / len(values)
        return condition.operator.compare(average, condition.threshold)

    async def check_alerts(self) -> None:
        """Evaluate every active alert once and apply state transitions.

        Transitions are decided synchronously; dispatch and history writes
        for different alerts then run concurrently.
        """
        now = self._clock()
        triggered: list[Alert] = []
        resolved: list[Alert] = []

        for alert_id, alert in list(self._alerts.items()):
            if not alert.is_active:
                continue
            should_fire = self.evaluate(alert.conditions, now)
            firing = alert_id in self._active

            if should_fire and not firing:
                self._active[alert_id] = ActiveAlertState(alert_id=alert_id, triggered_at=now)
                triggered.append(alert)
            elif not should_fire and firing:
                del self._active[alert_id]
                resolved.append(alert)

        await asyncio.gather(
            *(self._trigger(alert, now) for alert in triggered),
            *(self._resolve(alert, now) for alert in resolved),
        )

    # ── Transitions ─────────────────────────────────────────────

    async def _trigger(self, alert: Alert, now: float) -> None:
        logger.warning(
            "alert_triggered",
            alert_id=alert.id,
            name=alert.name,
            severity=alert.severity.value,
        )
        await asyncio.gather(*(self._dispatch(action, alert) for action in alert.actions))
        await self._append_history(alert, HistoryAction.TRIGGERED, now)

    async def _resolve(self, alert: Alert, now: float) -> None:
        logger.info("alert_resolved", alert_id=alert.id, name=alert.name)
        await self._append_history(alert, HistoryAction.RESOLVED, now)

    async def _dispatch(self, action: AlertAction, alert: Alert) -> bool:
        try:
            ok = await asyncio.wait_for(
                self._notifier.dispatch(action, alert),
                self._dispatch_timeout_secs,
            )
        except TimeoutError:
            logger.warning(
                "alert_dispatch_timeout",
                alert_id=alert.id,
                channel=action.type.value,
                target=action.target,
            )
            return False
        except Exception:
            logger.exception(
                "alert_dispatch_error",
                alert_id=alert.id,
                channel=action.type.value,
                target=action.target,
            )
            return False

        if not ok:
            logger.warning(
                "alert_dispatch_failed",
                alert_id=alert.id,
                channel=action.type.value,
                target=action.target,
            )
        return bool(ok)

    async def _append_history(self, alert: Alert, action: HistoryAction, now: float) -> None:
        try:
            await self._store.append_history(
                alert.id,
                action,
                alert.severity,
                history_message(alert, action),
                now,
            )
        except Exception:
            logger.exception("alert_history_error", alert_id=alert.id, action=action.value)
