"""Alert persistence — the store contract plus in-memory and YAML implementations."""

from __future__ import annotations

import abc
import asyncio
import json
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel

from pulsemon.core.types import Alert, HistoryAction, Severity

logger = structlog.get_logger(__name__)


class AlertHistoryEntry(BaseModel):
    """One trigger/resolve event."""

    alert_id: str
    action: HistoryAction
    severity: Severity
    message: str
    timestamp: float


class AlertStore(abc.ABC):
    """Persistence for alert definitions and alert history."""

    @abc.abstractmethod
    async def load_active_alerts(self) -> list[Alert]:
        """Return every stored alert with ``is_active`` set."""

    @abc.abstractmethod
    async def insert(self, alert: Alert) -> None:
        """Persist a new alert definition."""

    @abc.abstractmethod
    async def update(self, alert_id: str, fields: dict[str, Any]) -> None:
        """Apply ``fields`` to a stored definition."""

    @abc.abstractmethod
    async def delete(self, alert_id: str) -> None:
        """Remove a stored definition."""

    @abc.abstractmethod
    async def append_history(
        self,
        alert_id: str,
        action: HistoryAction,
        severity: Severity,
        message: str,
        timestamp: float,
    ) -> None:
        """Append a trigger/resolve event."""


class InMemoryAlertStore(AlertStore):
    """Process-local store. Contents are lost on restart."""

    def __init__(self, alerts: list[Alert] | None = None) -> None:
        self._alerts: dict[str, Alert] = {a.id: a for a in alerts or []}
        self._history: list[AlertHistoryEntry] = []

    @property
    def alerts(self) -> dict[str, Alert]:
        return dict(self._alerts)

    @property
    def history(self) -> list[AlertHistoryEntry]:
        return list(self._history)

    async def load_active_alerts(self) -> list[Alert]:
        return [a for a in self._alerts.values() if a.is_active]

    async def insert(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert

    async def update(self, alert_id: str, fields: dict[str, Any]) -> None:
        existing = self._alerts[alert_id]
        self._alerts[alert_id] = Alert.model_validate({**existing.model_dump(), **fields})

    async def delete(self, alert_id: str) -> None:
        self._alerts.pop(alert_id, None)

    async def append_history(
        self,
        alert_id: str,
        action: HistoryAction,
        severity: Severity,
        message: str,
        timestamp: float,
    ) -> None:
        self._history.append(AlertHistoryEntry(
            alert_id=alert_id,
            action=action,
            severity=severity,
            message=message,
            timestamp=timestamp,
        ))


class YamlAlertStore(InMemoryAlertStore):
    """Keeps definitions in a YAML file and appends history as JSON lines.

    The definition file is rewritten in full after every change. Without a
    ``history_path`` history is kept in memory only.
    """

    def __init__(self, path: str | Path, history_path: str | Path | None = None) -> None:
        super().__init__()
        self._path = Path(path)
        self._history_path = Path(history_path) if history_path else None
        self._write_lock = asyncio.Lock()
        self._loaded = False

    async def load_active_alerts(self) -> list[Alert]:
        await self._ensure_loaded()
        return await super().load_active_alerts()

    async def insert(self, alert: Alert) -> None:
        await self._ensure_loaded()
        await super().insert(alert)
        await self._flush()

    async def update(self, alert_id: str, fields: dict[str, Any]) -> None:
        await self._ensure_loaded()
        await super().update(alert_id, fields)
        await self._flush()

    async def delete(self, alert_id: str) -> None:
        await self._ensure_loaded()
        await super().delete(alert_id)
        await self._flush()

    async def append_history(
        self,
        alert_id: str,
        action: HistoryAction,
        severity: Severity,
        message: str,
        timestamp: float,
    ) -> None:
        if self._history_path is None:
            await super().append_history(alert_id, action, severity, message, timestamp)
            return
        entry = AlertHistoryEntry(
            alert_id=alert_id,
            action=action,
            severity=severity,
            message=message,
            timestamp=timestamp,
        )
        line = json.dumps(entry.model_dump(mode="json")) + "\n"
        async with self._write_lock:
            await asyncio.to_thread(_append_text, self._history_path, line)

    # ── Internal ────────────────────────────────────────────────

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        raw = await asyncio.to_thread(_read_yaml, self._path)
        for item in raw:
            alert = Alert.model_validate(item)
            self._alerts[alert.id] = alert
        self._loaded = True
        logger.info("alert_store_loaded", path=str(self._path), alerts=len(self._alerts))

    async def _flush(self) -> None:
        data = [a.model_dump(mode="json") for a in self._alerts.values()]
        async with self._write_lock:
            await asyncio.to_thread(_write_yaml, self._path, data)


def _read_yaml(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    with open(path) as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]


def _write_yaml(path: Path, data: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
    tmp.replace(path)


def _append_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as f:
        f.write(text)
