# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Error Taxonomy — Startup-fatal and per-message failure types.

Startup errors (config, initial connect, PID file) are raised and end the
process. Per-message failures (spawn, non-zero exit, reply transport) are
reported as ExecutionOutcome values and never escape the dispatcher.
"""

from __future__ import annotations

from typing import Optional


class HookError(Exception):
    """Base class for all BusHook errors."""


class ConfigError(HookError):
    """Malformed or unreadable hook configuration."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class SubjectError(HookError, ValueError):
    """Subject string is not valid for the requested operation."""


class BusError(HookError):
    """Base class for bus transport errors."""


class BusConnectionError(BusError):
    """Initial connection to the bus failed."""


class BusClosedError(BusError):
    """The bus gave up reconnecting or was closed."""


class BusTimeoutError(BusError):
    """No reply arrived before the request deadline."""


class ReplyTransportError(BusError):
    """A reply could not be published to the message's reply subject."""
