"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, SecretStr

from pulsemon.core.types import Severity

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")
CONFIG_ENV_VAR = "PULSEMON_CONFIG"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    # Third-party loggers capped at WARNING. The access log duplicates
    # the request metrics middleware.
    quiet_loggers: list[str] = ["aiohttp.access"]


class CollectionConfig(BaseModel):
    """Metric collection configuration."""

    interval_secs: float = 30.0
    series_cap: int = 1000
    enabled_metrics: list[str] = [
        "http",
        "system",
        "database",
        "cache",
        "custom",
    ]


class AlertingConfig(BaseModel):
    """Alert evaluation configuration."""

    enabled: bool = True
    check_interval_secs: float = 60.0
    default_severity: Severity = Severity.MEDIUM
    dispatch_timeout_secs: float = 10.0


class ExportConfig(BaseModel):
    """Prometheus exposition configuration."""

    prometheus_enabled: bool = True
    metrics_path: str = "/metrics"
    per_label_set: bool = False


class ServerConfig(BaseModel):
    """HTTP server configuration — basic auth guards the alert admin routes."""

    host: str = "0.0.0.0"
    port: int = 9090
    username: str = ""
    password: SecretStr = SecretStr("")


class StoreConfig(BaseModel):
    """Alert store configuration. An empty path selects the in-memory store."""

    path: str = ""
    history_path: str = ""


class Settings(BaseModel):
    """Root settings container."""

    logging: LoggingConfig = LoggingConfig()
    collection: CollectionConfig = CollectionConfig()
    alerting: AlertingConfig = AlertingConfig()
    export: ExportConfig = ExportConfig()
    server: ServerConfig = ServerConfig()
    store: StoreConfig = StoreConfig()
    version: str = "1.0.0"


def _config_path(path: str | Path | None) -> Path:
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    return Path(env_path) if env_path else _DEFAULT_CONFIG_PATH


def load_settings(path: str | Path | None = None) -> Settings:
    """Parse the YAML config into :class:`Settings` and cache it process-wide.

    The path falls back to ``$PULSEMON_CONFIG`` and then to
    ``config/settings.yaml``. A missing or empty file yields defaults.

    Raises:
        ValueError: The file's top level is not a mapping.
    """
    global _settings  # noqa: PLW0603

    config_path = _config_path(path)
    raw: Any = None
    if config_path.is_file():
        raw = yaml.safe_load(config_path.read_text())
    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"{config_path}: expected a mapping at the top level")

    _settings = Settings.model_validate(raw or {})
    return _settings


def get_settings() -> Settings:
    """Cached settings; loads from the default location on first use."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads."""
    global _settings  # noqa: PLW0603
    _settings = None
