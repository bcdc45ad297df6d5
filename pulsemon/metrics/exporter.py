"""Prometheus text exposition of the registry's latest values."""

from __future__ import annotations

import math

from pulsemon.core.types import MetricPoint
from pulsemon.metrics.registry import MetricRegistry

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def format_labels(labels: dict[str, str] | None) -> str:
    """Render ``{k1="v1",k2="v2"}``, or an empty string when there are no labels."""
    if not labels:
        return ""
    pairs = ",".join(
        f'{key}="{escape_label_value(labels[key])}"' for key in sorted(labels)
    )
    return "{" + pairs + "}"


def format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def format_sample(point: MetricPoint) -> str:
    return (
        f"{point.name}{format_labels(dict(point.labels))} "
        f"{format_value(point.value)} {point.timestamp_ms}"
    )


class PrometheusExporter:
    """Snapshot exporter: one ``# TYPE`` block per metric name.

    By default only the most recent point of each name is emitted. With
    ``per_label_set=True`` the most recent point of every distinct label set
    is emitted instead, in the order the label sets were last written.
    """

    def __init__(self, registry: MetricRegistry, per_label_set: bool = False) -> None:
        self._registry = registry
        self._per_label_set = per_label_set

    def export(self) -> str:
        lines: list[str] = []
        for name in self._registry.names():
            points = self._registry.query(name)
            if not points:
                continue

            help_text = self._registry.help_for(name)
            if help_text:
                lines.append(f"# HELP {name} {_escape_help(help_text)}")
            lines.append(f"# TYPE {name} {points[-1].kind.value}")

            for point in self._samples(points):
                lines.append(format_sample(point))

        if not lines:
            return ""
        return "\n".join(lines) + "\n"

    def _samples(self, points: list[MetricPoint]) -> list[MetricPoint]:
        if not self._per_label_set:
            return [points[-1]]
        latest: dict[tuple[tuple[str, str], ...], MetricPoint] = {}
        for point in points:
            key = tuple(sorted(point.labels.items()))
            latest.pop(key, None)
            latest[key] = point
        return list(latest.values())


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")
