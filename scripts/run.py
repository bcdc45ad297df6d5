#!/usr/bin/env python3
"""Service entrypoint — starts collection, alerting, and the HTTP endpoints.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level and listen address
    python scripts/run.py --log-level DEBUG --host 127.0.0.1 --port 9100
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys

import structlog

from pulsemon.core.config import load_settings
from pulsemon.core.logging import setup_logging
from pulsemon.monitor.factory import create_monitoring_system
from pulsemon.monitor.web import start_web_server

logger = structlog.get_logger(__name__)


async def _wait_for_shutdown() -> None:
    """Block until SIGINT or SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # ProactorEventLoop on Windows has no signal handlers.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)
    await stop_event.wait()
    logger.info("shutdown_signal_received")


async def run(args: argparse.Namespace) -> int:
    """Serve until interrupted. Returns the process exit code."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    host = args.host or settings.server.host
    port = args.port or settings.server.port
    system = create_monitoring_system(settings)
    await system.start()

    try:
        runner = await start_web_server(
            system,
            host=host,
            port=port,
            username=settings.server.username or None,
            password=settings.server.password.get_secret_value() or None,
        )
    except OSError:
        logger.exception("web_server_start_failed", host=host, port=port)
        await system.stop()
        return 1

    try:
        await _wait_for_shutdown()
    finally:
        await runner.cleanup()
        await system.stop()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the pulsemon metrics and alerting service.",
    )
    parser.add_argument("--config", help="Path to settings YAML (default: config/settings.yaml)")
    parser.add_argument("--log-level", help="Log level override: DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--host", help="Listen address override")
    parser.add_argument("--port", type=int, help="HTTP port override")

    try:
        code = asyncio.run(run(parser.parse_args()))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
