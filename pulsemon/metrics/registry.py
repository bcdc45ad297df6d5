"""MetricRegistry — bounded, thread-safe store of raw metric observations.

Every observation is kept (no pre-aggregation) in a per-name series capped
at ``series_cap`` points; appending past the cap evicts the oldest point.
Each series has its own lock so writers to different names never contend,
and readers always receive a copy taken under that lock.
"""

from __future__ import annotations

import threading
from collections import deque

import structlog

from pulsemon.core.types import MetricPoint

logger = structlog.get_logger(__name__)

DEFAULT_SERIES_CAP = 1000


class _Series:
    __slots__ = ("lock", "points")

    def __init__(self, cap: int) -> None:
        self.lock = threading.Lock()
        self.points: deque[MetricPoint] = deque(maxlen=cap)


class MetricRegistry:
    """In-memory store of metric series keyed by metric name.

    Usage::

        registry = MetricRegistry(series_cap=1000)
        registry.record(MetricPoint("cpu", 42.0, MetricKind.GAUGE))
        registry.latest("cpu")
    """

    def __init__(self, series_cap: int = DEFAULT_SERIES_CAP) -> None:
        if series_cap < 1:
            raise ValueError("series_cap must be >= 1")
        self._series_cap = series_cap
        self._series: dict[str, _Series] = {}
        self._help: dict[str, str] = {}
        self._series_lock = threading.Lock()

    @property
    def series_cap(self) -> int:
        return self._series_cap

    # ── Writes ──────────────────────────────────────────────────

    def record(self, point: MetricPoint) -> None:
        """Append a point to its series, evicting the oldest past the cap."""
        if not point.name or point.kind is None:
            logger.debug("metric_point_rejected", name=point.name)
            return
        series = self._get_or_create(point.name)
        with series.lock:
            series.points.append(point)

    def describe(self, name: str, help_text: str) -> None:
        """Attach HELP text to a metric name."""
        if name and help_text:
            self._help[name] = help_text

    # ── Reads ───────────────────────────────────────────────────

    def query(self, name: str | None = None) -> list[MetricPoint]:
        """Return a snapshot of one series, or of every series when name is None."""
        if name is not None:
            series = self._series.get(name)
            if series is None:
                return []
            with series.lock:
                return list(series.points)

        points: list[MetricPoint] = []
        for series_name in self.names():
            points.extend(self.query(series_name))
        return points

    def latest(self, name: str) -> MetricPoint | None:
        series = self._series.get(name)
        if series is None:
            return None
        with series.lock:
            return series.points[-1] if series.points else None

    def names(self) -> list[str]:
        """Metric names in first-recorded order."""
        with self._series_lock:
            return list(self._series)

    def help_for(self, name: str) -> str | None:
        return self._help.get(name)

    def __len__(self) -> int:
        return sum(len(self.query(n)) for n in self.names())

    # ── Internal ────────────────────────────────────────────────

    def _get_or_create(self, name: str) -> _Series:
        series = self._series.get(name)
        if series is not None:
            return series
        with self._series_lock:
            series = self._series.get(name)
            if series is None:
                series = _Series(self._series_cap)
                self._series[name] = series
            return series
