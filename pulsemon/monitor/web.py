"""aiohttp application exposing metrics, performance, health, and alert admin routes.

Exposes:
- ``GET /metrics``           → Prometheus text exposition
- ``GET /performance``       → PerformanceMetrics JSON (``tenantId``, ``hours``)
- ``GET /health``            → liveness JSON
- ``GET/POST /alerts``       → list / create alert definitions
- ``GET /alerts/active``     → firing records
- ``PATCH/DELETE /alerts/{alert_id}`` → update / delete a definition

Every request is recorded through ``MonitoringSystem.record_http_request``.
"""

from __future__ import annotations

import base64
import hmac
import json
import time
from typing import Any

import structlog
from aiohttp import web
from pydantic import ValidationError

from pulsemon.alerts.exceptions import (
    AlertNotFoundError,
    AlertStoreError,
    InvalidAlertUpdateError,
)
from pulsemon.core.types import AlertDraft
from pulsemon.metrics.exceptions import InvalidWindowError
from pulsemon.metrics.exporter import CONTENT_TYPE
from pulsemon.monitor.system import MonitoringSystem

logger = structlog.get_logger(__name__)

SYSTEM_KEY = web.AppKey("system", MonitoringSystem)
USERNAME_KEY = web.AppKey("auth_username", str)
PASSWORD_KEY = web.AppKey("auth_password", str)

TENANT_HEADER = "X-Tenant-Id"

_PROTECTED_PREFIX = "/alerts"


def _check_basic_auth(request: web.Request, username: str, password: str) -> bool:
    """Validate HTTP Basic Auth credentials."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Basic "):
        return False
    try:
        decoded = base64.b64decode(auth_header[6:]).decode("utf-8")
        req_user, req_pass = decoded.split(":", 1)
    except Exception:
        return False
    user_ok = hmac.compare_digest(req_user, username)
    pass_ok = hmac.compare_digest(req_pass, password)
    return user_ok and pass_ok


@web.middleware
async def _auth_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Require HTTP Basic Auth on alert admin routes when credentials are configured."""
    username = request.app[USERNAME_KEY]
    password = request.app[PASSWORD_KEY]
    if username and password and request.path.startswith(_PROTECTED_PREFIX):
        if not _check_basic_auth(request, username, password):
            return web.Response(
                status=401,
                text="Unauthorized",
                headers={"WWW-Authenticate": 'Basic realm="pulsemon"'},
            )
    return await handler(request)


def _route_label(request: web.Request) -> str:
    """Route template rather than raw path, to bound label cardinality."""
    resource = request.match_info.route.resource
    if resource is not None and resource.canonical:
        return resource.canonical
    return request.path


@web.middleware
async def _metrics_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Record method, route, status, duration, and tenant of every request."""
    system = request.app[SYSTEM_KEY]
    start = time.perf_counter()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as exc:
        status = exc.status
        raise
    finally:
        system.record_http_request(
            request.method,
            _route_label(request),
            status,
            (time.perf_counter() - start) * 1000,
            request.headers.get(TENANT_HEADER) or None,
        )


def _json_error(status: int, message: str, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


# ── Handlers ────────────────────────────────────────────────────


async def _handle_metrics(request: web.Request) -> web.Response:
    system = request.app[SYSTEM_KEY]
    if not system.settings.export.prometheus_enabled:
        raise web.HTTPNotFound()
    body = system.export_prometheus()
    return web.Response(body=body.encode("utf-8"), headers={"Content-Type": CONTENT_TYPE})


async def _handle_performance(request: web.Request) -> web.Response:
    system = request.app[SYSTEM_KEY]
    tenant_id = request.query.get("tenantId") or None
    raw_hours = request.query.get("hours") or "24"
    try:
        hours = float(raw_hours)
    except ValueError:
        return _json_error(400, f"invalid hours: {raw_hours!r}")

    try:
        metrics = system.performance_metrics(tenant_id, hours)
    except InvalidWindowError as exc:
        return _json_error(400, str(exc))
    return web.json_response(metrics.model_dump(by_alias=True))


async def _handle_health(request: web.Request) -> web.Response:
    system = request.app[SYSTEM_KEY]
    return web.json_response(system.health())


async def _handle_list_alerts(request: web.Request) -> web.Response:
    engine = request.app[SYSTEM_KEY].alerts
    alerts = [a.model_dump(mode="json") for a in engine.alerts.values()]
    return web.json_response(alerts)


async def _handle_active_alerts(request: web.Request) -> web.Response:
    engine = request.app[SYSTEM_KEY].alerts
    active = [
        {"alert_id": state.alert_id, "triggered_at": state.triggered_at}
        for state in engine.active_alerts.values()
    ]
    return web.json_response(active)


async def _read_json(request: web.Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except json.JSONDecodeError as exc:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "invalid JSON body"}),
            content_type="application/json",
        ) from exc
    if not isinstance(payload, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "expected a JSON object"}),
            content_type="application/json",
        )
    return payload


async def _handle_create_alert(request: web.Request) -> web.Response:
    engine = request.app[SYSTEM_KEY].alerts
    payload = await _read_json(request)
    try:
        draft = AlertDraft.model_validate(payload)
        alert = await engine.create_alert(draft)
    except ValidationError as exc:
        return _json_error(400, "invalid alert", details=json.loads(exc.json()))
    except AlertStoreError as exc:
        return _json_error(502, str(exc))
    return web.json_response(alert.model_dump(mode="json"), status=201)


async def _handle_update_alert(request: web.Request) -> web.Response:
    engine = request.app[SYSTEM_KEY].alerts
    alert_id = request.match_info["alert_id"]
    payload = await _read_json(request)
    try:
        alert = await engine.update_alert(alert_id, payload)
    except AlertNotFoundError:
        return _json_error(404, f"alert not found: {alert_id}")
    except InvalidAlertUpdateError as exc:
        return _json_error(400, str(exc), details=exc.fields)
    except ValidationError as exc:
        return _json_error(400, "invalid alert", details=json.loads(exc.json()))
    except AlertStoreError as exc:
        return _json_error(502, str(exc))
    return web.json_response(alert.model_dump(mode="json"))


async def _handle_delete_alert(request: web.Request) -> web.Response:
    engine = request.app[SYSTEM_KEY].alerts
    alert_id = request.match_info["alert_id"]
    try:
        await engine.delete_alert(alert_id)
    except AlertStoreError as exc:
        return _json_error(502, str(exc))
    return web.Response(status=204)


# ── Application ─────────────────────────────────────────────────


def create_web_app(
    system: MonitoringSystem,
    username: str | None = None,
    password: str | None = None,
) -> web.Application:
    """Create the aiohttp web application."""
    app = web.Application(middlewares=[_metrics_middleware, _auth_middleware])
    app[SYSTEM_KEY] = system
    app[USERNAME_KEY] = username or ""
    app[PASSWORD_KEY] = password or ""
    app.router.add_get(system.settings.export.metrics_path, _handle_metrics)
    app.router.add_get("/performance", _handle_performance)
    app.router.add_get("/health", _handle_health)
    app.router.add_get("/alerts", _handle_list_alerts)
    app.router.add_post("/alerts", _handle_create_alert)
    app.router.add_get("/alerts/active", _handle_active_alerts)
    app.router.add_patch("/alerts/{alert_id}", _handle_update_alert)
    app.router.add_delete("/alerts/{alert_id}", _handle_delete_alert)
    return app


async def start_web_server(
    system: MonitoringSystem,
    host: str = "0.0.0.0",
    port: int = 9090,
    username: str | None = None,
    password: str | None = None,
) -> web.AppRunner:
    """Start the HTTP server. Returns the runner for cleanup."""
    app = create_web_app(system, username=username, password=password)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("web_server_started", host=host, port=port)
    return runner
