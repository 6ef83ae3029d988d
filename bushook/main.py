# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
BusHook Entry Point.

    bushook -f hooks.toml [-a redis://host:6379/0] [--pid /run/bushook.pid]

Startup is all-or-nothing: a bad hook file, an unreachable server, a
rejected subscription or an unwritable PID file ends the process with
status 1. Afterwards it runs until SIGINT/SIGTERM (exit 0) or until the
bus gives up reconnecting (exit 1).
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from redis.exceptions import RedisError

from bushook import __version__
from bushook.core.config import HookSettings
from bushook.core.errors import ConfigError, HookError
from bushook.core.logging import setup_logging
from bushook.core.metrics import execution_stats
from bushook.core.pidfile import remove_pidfile, write_pidfile
from bushook.kernel.bus import RedisBus
from bushook.kernel.dispatcher import HookDispatcher
from bushook.kernel.reporter import ResultReporter
from bushook.kernel.routes import RouteTable, load_routes

logger = logging.getLogger("bushook.main")

# flag dest -> settings field
_FLAG_SETTINGS = {
    "addr": "REDIS_URL",
    "file": "HOOK_FILE",
    "pid": "PID_FILE",
    "username": "REDIS_USERNAME",
    "password": "REDIS_PASSWORD",
    "tlscert": "TLS_CERT",
    "tlskey": "TLS_KEY",
    "tlscacert": "TLS_CA_CERT",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bushook",
        description="Run commands for messages published on a Redis subject bus",
    )
    parser.add_argument("-a", "--addr", help="Redis URL of the bus (default: $REDIS_URL or redis://localhost:6379/0)")
    parser.add_argument("-f", "--file", help="Path to the toml file containing hooks definition")
    parser.add_argument("--pid", help="Create PID file at the given path")
    parser.add_argument("--username", help="Redis ACL username")
    parser.add_argument("--password", help="Redis password")
    parser.add_argument("--tlscert", help="TLS client certificate file")
    parser.add_argument("--tlskey", help="Private key file for client certificate")
    parser.add_argument("--tlscacert", help="CA certificate to verify peer against")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-format", choices=["json", "text"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_from_args(args: argparse.Namespace, **kwargs: Any) -> HookSettings:
    """Build settings from the environment with command-line flags on top."""
    overrides: Dict[str, Any] = {
        field: getattr(args, dest)
        for dest, field in _FLAG_SETTINGS.items()
        if getattr(args, dest, None) is not None
    }
    overrides.update(kwargs)
    return HookSettings(**overrides)


async def serve(
    settings: HookSettings,
    table: RouteTable,
    bus: Optional[RedisBus] = None,
    stop: Optional[asyncio.Event] = None,
) -> int:
    """
    Connect, subscribe every hook and run until stopped.

    Returns the process exit status. Startup failures raise HookError.
    """
    bus = bus or RedisBus.from_settings(settings)
    stop = stop or asyncio.Event()
    loop = asyncio.get_running_loop()
    signals = _install_signal_handlers(loop, stop)
    pid_path: Optional[Path] = None

    try:
        await bus.connect()
        dispatcher = HookDispatcher(
            bus,
            reporter=ResultReporter(preview_length=settings.OUTPUT_PREVIEW_LENGTH),
        )
        await dispatcher.register(table)

        if settings.PID_FILE:
            pid_path = write_pidfile(settings.PID_FILE)

        logger.info("Listening on %d subjects", len(table))
        stop_waiter = asyncio.create_task(stop.wait())
        closed_waiter = asyncio.create_task(bus.wait_closed())
        await asyncio.wait({stop_waiter, closed_waiter}, return_when=asyncio.FIRST_COMPLETED)
        for waiter in (stop_waiter, closed_waiter):
            waiter.cancel()

        if not stop.is_set():
            logger.critical("Exiting: %s", bus.last_error or "bus connection closed")
            return 1

        logger.info("Shutting down, %d hooks still running", dispatcher.inflight)
        await dispatcher.unregister()
        await dispatcher.wait_idle()
        return 0
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        if pid_path is not None:
            remove_pidfile(pid_path)
        await bus.close()
        with contextlib.suppress(RedisError, OSError):
            await bus.redis.aclose()
        logger.info("Execution stats: %s", execution_stats.snapshot())


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> List[int]:
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    return installed


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ValidationError as exc:
        parser.error(str(exc))

    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    if not settings.HOOK_FILE:
        parser.error("a hook file is required (-f/--file or HOOK_FILE)")

    try:
        table = load_routes(settings.HOOK_FILE)
    except ConfigError as exc:
        logger.critical("%s", exc)
        sys.exit(1)

    try:
        code = asyncio.run(serve(settings, table))
    except HookError as exc:
        logger.critical("%s", exc)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
