"""Tests for AlertEngine — evaluation, trigger-once, resolve, CRUD, dispatch isolation."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import ValidationError

from pulsemon.alerts.engine import AlertEngine
from pulsemon.alerts.exceptions import (
    AlertNotFoundError,
    AlertStoreError,
    InvalidAlertUpdateError,
)
from pulsemon.alerts.notifiers import Notifier
from pulsemon.alerts.store import InMemoryAlertStore
from pulsemon.core.types import (
    ActionType,
    Alert,
    AlertAction,
    AlertCondition,
    AlertDraft,
    ComparisonOperator,
    HistoryAction,
    MetricKind,
    MetricPoint,
    Severity,
)
from pulsemon.metrics.registry import MetricRegistry

NOW = 1_700_000_000.0


# ── Helpers ─────────────────────────────────────────────────────


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeNotifier(Notifier):
    """Records dispatches; can fail or hang for selected targets."""

    def __init__(
        self,
        fail_targets: set[str] | None = None,
        slow_targets: set[str] | None = None,
    ) -> None:
        self.sent: list[tuple[str, str]] = []
        self._fail = fail_targets or set()
        self._slow = slow_targets or set()
        self.closed = False

    async def dispatch(self, action: AlertAction, alert: Alert) -> bool:
        if action.target in self._slow:
            await asyncio.sleep(10)
        if action.target in self._fail:
            raise ConnectionError("fake error")
        self.sent.append((alert.id, action.target))
        return True

    async def close(self) -> None:
        self.closed = True


class FailingStore(InMemoryAlertStore):
    def __init__(self, fail_on: set[str], **kw: Any) -> None:
        super().__init__(**kw)
        self._fail_on = fail_on

    async def insert(self, alert: Alert) -> None:
        if "insert" in self._fail_on:
            raise OSError("disk full")
        await super().insert(alert)

    async def update(self, alert_id: str, fields: dict[str, Any]) -> None:
        if "update" in self._fail_on:
            raise OSError("disk full")
        await super().update(alert_id, fields)

    async def delete(self, alert_id: str) -> None:
        if "delete" in self._fail_on:
            raise OSError("disk full")
        await super().delete(alert_id)

    async def append_history(self, *args: Any) -> None:
        if "history" in self._fail_on:
            raise OSError("disk full")
        await super().append_history(*args)

    async def load_active_alerts(self) -> list[Alert]:
        if "load" in self._fail_on:
            raise OSError("unreachable")
        return await super().load_active_alerts()


def _cond(
    metric: str = "cpu",
    op: ComparisonOperator = ComparisonOperator.GT,
    threshold: float = 80.0,
    duration: float = 5.0,
) -> AlertCondition:
    return AlertCondition(metric=metric, operator=op, threshold=threshold, duration=duration)


def _draft(**kw: Any) -> AlertDraft:
    defaults: dict[str, Any] = {
        "name": "High CPU",
        "description": "cpu above 80",
        "conditions": [_cond()],
        "actions": [
            AlertAction(type=ActionType.EMAIL, target="ops@example.com"),
            AlertAction(type=ActionType.SLACK, target="#alerts"),
        ],
    }
    defaults.update(kw)
    return AlertDraft(**defaults)


def _record(reg: MetricRegistry, name: str, value: float, ts: float) -> None:
    reg.record(MetricPoint(name=name, value=value, kind=MetricKind.GAUGE, timestamp=ts))


def _engine(
    reg: MetricRegistry | None = None,
    store: InMemoryAlertStore | None = None,
    notifier: FakeNotifier | None = None,
    clock: FakeClock | None = None,
    **kw: Any,
) -> tuple[AlertEngine, MetricRegistry, InMemoryAlertStore, FakeNotifier, FakeClock]:
    reg = reg or MetricRegistry()
    store = store or InMemoryAlertStore()
    notifier = notifier or FakeNotifier()
    clock = clock or FakeClock()
    engine = AlertEngine(reg, store, notifier, clock=clock, **kw)
    return engine, reg, store, notifier, clock


def _history(store: InMemoryAlertStore, action: HistoryAction) -> list[str]:
    return [h.alert_id for h in store.history if h.action == action]


# ── evaluate ────────────────────────────────────────────────────


class TestEvaluate:
    def test_average_over_window(self) -> None:
        engine, reg, *_ = _engine()
        _record(reg, "cpu", 70, NOW - 60)
        _record(reg, "cpu", 100, NOW - 30)
        assert engine.evaluate([_cond(threshold=80)], NOW) is True
        assert engine.evaluate([_cond(threshold=85)], NOW) is False

    def test_points_outside_window_ignored(self) -> None:
        engine, reg, *_ = _engine()
        _record(reg, "cpu", 100, NOW - 600)
        _record(reg, "cpu", 10, NOW - 30)
        assert engine.evaluate([_cond(duration=5)], NOW) is False
        assert engine.evaluate([_cond(duration=15)], NOW) is False
        assert engine.evaluate([_cond(threshold=50, duration=15)], NOW) is True

    def test_unknown_metric_not_matched(self) -> None:
        engine, *_ = _engine()
        assert engine.evaluate([_cond(metric="never_seen")], NOW) is False

    def test_empty_window_not_matched(self) -> None:
        engine, reg, *_ = _engine()
        _record(reg, "cpu", 100, NOW - 3600)
        assert engine.evaluate([_cond(op=ComparisonOperator.LT, threshold=1e9)], NOW) is False

    def test_or_combined(self) -> None:
        engine, reg, *_ = _engine()
        _record(reg, "cpu", 10, NOW - 10)
        _record(reg, "mem", 95, NOW - 10)
        conditions = [_cond("cpu", threshold=80), _cond("mem", threshold=90)]
        assert engine.evaluate(conditions, NOW) is True

    def test_no_conditions(self) -> None:
        engine, *_ = _engine()
        assert engine.evaluate([], NOW) is False

    @pytest.mark.parametrize(
        ("op", "expected"),
        [
            (ComparisonOperator.GT, False),
            (ComparisonOperator.GE, True),
            (ComparisonOperator.LT, False),
            (ComparisonOperator.LE, True),
            (ComparisonOperator.EQ, True),
            (ComparisonOperator.NE, False),
        ],
    )
    def test_operators_at_threshold(self, op: ComparisonOperator, expected: bool) -> None:
        engine, reg, *_ = _engine()
        _record(reg, "cpu", 80, NOW - 10)
        assert engine.evaluate([_cond(op=op, threshold=80)], NOW) is expected


# ── State machine ───────────────────────────────────────────────


class TestTriggerOnce:
    async def test_three_true_ticks_trigger_once(self) -> None:
        engine, reg, store, notifier, clock = _engine()
        alert = await engine.create_alert(_draft())
        for i in range(3):
            clock.now = NOW + i * 60
            _record(reg, "cpu", 95, clock.now - 1)
            await engine.tick()

        assert _history(store, HistoryAction.TRIGGERED) == [alert.id]
        assert _history(store, HistoryAction.RESOLVED) == []
        assert sorted(t for _, t in notifier.sent) == ["#alerts", "ops@example.com"]
        assert engine.is_firing(alert.id)

    async def test_trigger_records_state(self) -> None:
        engine, reg, _, _, clock = _engine()
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        state = engine.active_alerts[alert.id]
        assert state.triggered_at == clock.now

    async def test_false_stays_inactive(self) -> None:
        engine, reg, store, notifier, _ = _engine()
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 10, NOW - 1)
        await engine.tick()
        await engine.tick()
        assert store.history == []
        assert notifier.sent == []
        assert not engine.is_firing(alert.id)


class TestResolve:
    async def test_true_then_false(self) -> None:
        engine, reg, store, notifier, clock = _engine()
        alert = await engine.create_alert(_draft())

        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        assert _history(store, HistoryAction.TRIGGERED) == [alert.id]
        assert _history(store, HistoryAction.RESOLVED) == []
        dispatched = len(notifier.sent)

        clock.now = NOW + 3600
        _record(reg, "cpu", 10, clock.now - 1)
        await engine.tick()
        assert _history(store, HistoryAction.RESOLVED) == [alert.id]
        assert len(notifier.sent) == dispatched
        assert not engine.is_firing(alert.id)

    async def test_refires_after_resolve(self) -> None:
        engine, reg, store, _, clock = _engine()
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        clock.now = NOW + 3600
        await engine.tick()
        clock.now = NOW + 7200
        _record(reg, "cpu", 95, clock.now - 1)
        await engine.tick()
        assert _history(store, HistoryAction.TRIGGERED) == [alert.id, alert.id]

    async def test_history_content(self) -> None:
        engine, reg, store, _, _ = _engine()
        await engine.create_alert(_draft(severity=Severity.CRITICAL))
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        (entry,) = store.history
        assert entry.severity == Severity.CRITICAL
        assert entry.message == "Alert High CPU was triggered"
        assert entry.timestamp == NOW


class TestDisabledAlerts:
    async def test_inactive_alert_not_evaluated(self) -> None:
        engine, reg, store, notifier, _ = _engine()
        await engine.create_alert(_draft(is_active=False))
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        assert store.history == []
        assert notifier.sent == []

    async def test_disabling_clears_firing_state(self) -> None:
        engine, reg, _, _, _ = _engine()
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        await engine.update_alert(alert.id, {"is_active": False})
        assert not engine.is_firing(alert.id)


# ── Dispatch isolation ──────────────────────────────────────────


class TestDispatch:
    async def test_failing_action_does_not_block_others(self) -> None:
        notifier = FakeNotifier(fail_targets={"ops@example.com"})
        engine, reg, store, _, _ = _engine(notifier=notifier)
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        assert notifier.sent == [(alert.id, "#alerts")]
        assert _history(store, HistoryAction.TRIGGERED) == [alert.id]

    async def test_slow_action_times_out(self) -> None:
        notifier = FakeNotifier(slow_targets={"ops@example.com"})
        engine, reg, store, _, _ = _engine(notifier=notifier, dispatch_timeout_secs=0.05)
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await asyncio.wait_for(engine.tick(), 2)
        assert notifier.sent == [(alert.id, "#alerts")]
        assert _history(store, HistoryAction.TRIGGERED) == [alert.id]

    async def test_slow_alert_does_not_serialise_others(self) -> None:
        notifier = FakeNotifier(slow_targets={"slow"})
        engine, reg, _, _, _ = _engine(notifier=notifier, dispatch_timeout_secs=0.2)
        await engine.create_alert(_draft(
            name="slow",
            actions=[AlertAction(type=ActionType.WEBHOOK, target="slow")],
        ))
        fast = [
            await engine.create_alert(_draft(
                name=f"fast{i}",
                actions=[AlertAction(type=ActionType.WEBHOOK, target=f"fast{i}")],
            ))
            for i in range(5)
        ]
        _record(reg, "cpu", 95, NOW - 1)
        loop = asyncio.get_running_loop()
        start = loop.time()
        await engine.tick()
        elapsed = loop.time() - start
        assert elapsed < 0.2 * len(fast)
        assert {t for _, t in notifier.sent} == {f"fast{i}" for i in range(5)}

    async def test_notifier_returning_false_is_logged_not_raised(self) -> None:
        class RefusingNotifier(FakeNotifier):
            async def dispatch(self, action: AlertAction, alert: Alert) -> bool:
                return False

        engine, reg, store, _, _ = _engine(notifier=RefusingNotifier())
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        assert _history(store, HistoryAction.TRIGGERED) == [alert.id]

    async def test_history_failure_does_not_break_tick(self) -> None:
        store = FailingStore(fail_on={"history"})
        engine, reg, _, notifier, _ = _engine(store=store)
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        assert engine.is_firing(alert.id)
        assert len(notifier.sent) == 2


# ── Non-overlap ─────────────────────────────────────────────────


class TestNonOverlap:
    async def test_concurrent_tick_is_skipped(self) -> None:
        notifier = FakeNotifier(slow_targets={"ops@example.com"})
        engine, reg, store, _, _ = _engine(notifier=notifier, dispatch_timeout_secs=0.1)
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)

        results = await asyncio.gather(engine.tick(), engine.tick())
        assert sorted(results) == [False, True]
        assert _history(store, HistoryAction.TRIGGERED) == [alert.id]


# ── Administration ──────────────────────────────────────────────


class TestCrud:
    async def test_create_assigns_id_and_default_severity(self) -> None:
        engine, _, store, _, _ = _engine(default_severity=Severity.HIGH)
        alert = await engine.create_alert(_draft())
        assert alert.id
        assert alert.severity == Severity.HIGH
        assert alert.id in store.alerts
        assert alert.id in engine.alerts

    async def test_create_from_dict(self) -> None:
        engine, *_ = _engine()
        alert = await engine.create_alert({
            "name": "Errors",
            "severity": "critical",
            "conditions": [{"metric": "errors_total", "operator": ">=", "threshold": 5}],
        })
        assert alert.severity == Severity.CRITICAL
        assert alert.conditions[0].operator == ComparisonOperator.GE

    async def test_create_store_failure_propagates(self) -> None:
        engine, *_ = _engine(store=FailingStore(fail_on={"insert"}))
        with pytest.raises(AlertStoreError):
            await engine.create_alert(_draft())
        assert engine.alerts == {}

    async def test_update(self) -> None:
        engine, _, store, _, _ = _engine()
        alert = await engine.create_alert(_draft())
        updated = await engine.update_alert(alert.id, {"name": "Very High CPU"})
        assert updated.name == "Very High CPU"
        assert updated.id == alert.id
        assert store.alerts[alert.id].name == "Very High CPU"

    async def test_update_accepts_camel_case(self) -> None:
        engine, _, store, _, _ = _engine()
        alert = await engine.create_alert(_draft())
        updated = await engine.update_alert(alert.id, {"isActive": False})
        assert updated.is_active is False
        assert store.alerts[alert.id].is_active is False

    async def test_update_rejects_read_only_and_unknown_keys(self) -> None:
        engine, _, store, _, _ = _engine()
        alert = await engine.create_alert(_draft())
        with pytest.raises(InvalidAlertUpdateError) as exc_info:
            await engine.update_alert(alert.id, {"id": "other", "threshold": 1, "name": "x"})
        assert exc_info.value.fields == ["id", "threshold"]
        assert engine.alerts[alert.id].name == "High CPU"
        assert store.alerts[alert.id].name == "High CPU"

    async def test_update_unknown(self) -> None:
        engine, *_ = _engine()
        with pytest.raises(AlertNotFoundError):
            await engine.update_alert("missing", {"name": "x"})

    async def test_update_invalid_fields(self) -> None:
        engine, *_ = _engine()
        alert = await engine.create_alert(_draft())
        with pytest.raises(ValidationError):
            await engine.update_alert(alert.id, {"severity": "apocalyptic"})
        assert engine.alerts[alert.id].severity == alert.severity

    async def test_update_store_failure_keeps_old_definition(self) -> None:
        store = FailingStore(fail_on=set())
        engine, *_ = _engine(store=store)
        alert = await engine.create_alert(_draft())
        store._fail_on = {"update"}
        with pytest.raises(AlertStoreError):
            await engine.update_alert(alert.id, {"name": "new"})
        assert engine.alerts[alert.id].name == "High CPU"

    async def test_delete_clears_firing_state(self) -> None:
        engine, reg, store, _, _ = _engine()
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.tick()
        assert engine.is_firing(alert.id)

        await engine.delete_alert(alert.id)
        assert alert.id not in engine.alerts
        assert not engine.is_firing(alert.id)
        assert alert.id not in store.alerts

    async def test_delete_store_failure_propagates(self) -> None:
        store = FailingStore(fail_on=set())
        engine, *_ = _engine(store=store)
        alert = await engine.create_alert(_draft())
        store._fail_on = {"delete"}
        with pytest.raises(AlertStoreError):
            await engine.delete_alert(alert.id)
        assert alert.id in engine.alerts


class TestLoad:
    async def test_load_only_active(self) -> None:
        active = Alert(name="on", conditions=[_cond()])
        inactive = Alert(name="off", is_active=False)
        store = InMemoryAlertStore([active, inactive])
        engine, *_ = _engine(store=store)
        assert await engine.load() == 1
        assert list(engine.alerts) == [active.id]

    async def test_load_failure_is_logged(self) -> None:
        engine, *_ = _engine(store=FailingStore(fail_on={"load"}))
        assert await engine.load() == 0


class TestLifecycle:
    async def test_start_stop(self) -> None:
        engine, reg, store, _, _ = _engine(check_interval_secs=60)
        alert = await engine.create_alert(_draft())
        _record(reg, "cpu", 95, NOW - 1)
        await engine.start()
        assert engine.running
        await asyncio.sleep(0.01)
        await engine.stop()
        assert not engine.running
        assert _history(store, HistoryAction.TRIGGERED) == [alert.id]
