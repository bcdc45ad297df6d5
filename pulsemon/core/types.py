"""Domain types shared across metrics, alerting, and the HTTP surface."""

from __future__ import annotations

import operator
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ── Metrics ─────────────────────────────────────────────────────


class MetricKind(StrEnum):
    """Prometheus metric type of a recorded point."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"


@dataclass(frozen=True, slots=True)
class MetricPoint:
    """A single immutable observation stored by the registry."""

    name: str
    value: float
    kind: MetricKind
    labels: Mapping[str, str] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp * 1000)


# ── Alerts ──────────────────────────────────────────────────────


class Severity(StrEnum):
    """Alert severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


class ComparisonOperator(StrEnum):
    """Comparison applied between a windowed average and a threshold."""

    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "=="
    NE = "!="

    def compare(self, value: float, threshold: float) -> bool:
        return _COMPARATORS[self.value](value, threshold)


class ActionType(StrEnum):
    """Notification channel an alert action is delivered through."""

    EMAIL = "email"
    WEBHOOK = "webhook"
    SLACK = "slack"
    SMS = "sms"


class HistoryAction(StrEnum):
    """Lifecycle event recorded in alert history."""

    TRIGGERED = "triggered"
    RESOLVED = "resolved"


class AlertCondition(BaseModel):
    """Average of ``metric`` over the trailing ``duration`` minutes vs ``threshold``."""

    metric: str
    operator: ComparisonOperator
    threshold: float
    duration: float = Field(default=5.0, ge=0)


class AlertAction(BaseModel):
    """Where to deliver a triggered alert."""

    type: ActionType
    target: str
    template: str | None = None


class AlertDraft(BaseModel):
    """Alert definition as supplied by an administrator, before an id is assigned."""

    name: str
    description: str = ""
    severity: Severity | None = None
    conditions: list[AlertCondition] = Field(default_factory=list)
    actions: list[AlertAction] = Field(default_factory=list)
    is_active: bool = True
    tenant_id: str | None = None


class Alert(BaseModel):
    """A standing alert definition.

    ``is_active`` is the administrative enable flag. Whether the alert is
    currently firing is tracked separately by the engine.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str = ""
    severity: Severity = Severity.MEDIUM
    conditions: list[AlertCondition] = Field(default_factory=list)
    actions: list[AlertAction] = Field(default_factory=list)
    is_active: bool = True
    tenant_id: str | None = None
    created_at: float = Field(default_factory=time.time)


@dataclass
class ActiveAlertState:
    """Firing record for one alert. Never persisted."""

    alert_id: str
    triggered_at: float


# ── System stats ────────────────────────────────────────────────


class SystemStats(BaseModel):
    """Resource figures returned by a stats provider.

    ``None`` means the provider has no reading; the matching gauge is left
    untouched.
    """

    cpu_percent: float = 0.0
    memory_bytes: float = 0.0
    disk_percent: float | None = None
    active_db_connections: float | None = None
    db_query_time_ms: float | None = None
    db_slow_queries: float | None = None
    cache_hit_rate_percent: float | None = None
    cache_eviction_rate: float | None = None
    active_users: float | None = None


# ── Performance summary ─────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseTime(_CamelModel):
    avg: float = 0.0
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


class Throughput(_CamelModel):
    requests_per_second: float = 0.0
    requests_per_minute: float = 0.0


class ErrorRate(_CamelModel):
    percentage: float = 0.0
    count: int = 0


class SystemHealth(_CamelModel):
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    disk_usage: float = 0.0
    uptime: float = 0.0


class DatabaseMetrics(_CamelModel):
    connection_count: float = 0.0
    query_time: float = 0.0
    slow_queries: float = 0.0


class CacheMetrics(_CamelModel):
    hit_rate: float = 0.0
    miss_rate: float = 0.0
    eviction_rate: float = 0.0


class PerformanceMetrics(_CamelModel):
    """Aggregated request/resource figures. Serialised with camelCase keys."""

    response_time: ResponseTime = Field(default_factory=ResponseTime)
    throughput: Throughput = Field(default_factory=Throughput)
    error_rate: ErrorRate = Field(default_factory=ErrorRate)
    system_health: SystemHealth = Field(default_factory=SystemHealth)
    database_metrics: DatabaseMetrics = Field(default_factory=DatabaseMetrics)
    cache_metrics: CacheMetrics = Field(default_factory=CacheMetrics)
