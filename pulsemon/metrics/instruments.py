"""Typed write-only handles that translate domain calls into registry writes.

Instruments are fire-and-forget: they never raise into the caller, since a
metrics failure must not break request handling.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping

import structlog

from pulsemon.core.types import MetricKind, MetricPoint
from pulsemon.metrics.registry import MetricRegistry

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


class _Instrument:
    kind: MetricKind

    def __init__(
        self,
        name: str,
        registry: MetricRegistry,
        help_text: str = "",
        clock: Clock = time.time,
    ) -> None:
        self.name = name
        self._registry = registry
        self._clock = clock
        registry.describe(name, help_text)

    def _write(self, value: float, labels: Mapping[str, str] | None) -> None:
        try:
            point = MetricPoint(
                name=self.name,
                value=float(value),
                kind=self.kind,
                labels={str(k): str(v) for k, v in (labels or {}).items()},
                timestamp=self._clock(),
            )
            self._registry.record(point)
        except Exception:
            logger.debug("metric_write_dropped", metric=self.name, exc_info=True)


class Counter(_Instrument):
    """Monotonic counter. Each ``inc`` stores one increment point, not a total."""

    kind = MetricKind.COUNTER

    def inc(self, labels: Mapping[str, str] | None = None, value: float = 1.0) -> None:
        self._write(value, labels)


class Gauge(_Instrument):
    """Current-state value; the latest point is the gauge's value.

    ``inc``/``dec`` store the delta as a fresh point rather than a running
    total.
    """

    kind = MetricKind.GAUGE

    def set(self, value: float, labels: Mapping[str, str] | None = None) -> None:
        self._write(value, labels)

    def inc(self, labels: Mapping[str, str] | None = None, value: float = 1.0) -> None:
        self.set(value, labels)

    def dec(self, labels: Mapping[str, str] | None = None, value: float = 1.0) -> None:
        self.set(-value, labels)


class Histogram(_Instrument):
    """One point per observation; bucketing is left to consumers."""

    kind = MetricKind.HISTOGRAM

    def observe(self, value: float, labels: Mapping[str, str] | None = None) -> None:
        self._write(value, labels)


class Summary(_Instrument):
    """One point per observation."""

    kind = MetricKind.SUMMARY

    def observe(self, value: float, labels: Mapping[str, str] | None = None) -> None:
        self._write(value, labels)
