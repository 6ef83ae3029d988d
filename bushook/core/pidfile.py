# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
PID File — Written once subscriptions are live, removed on shutdown.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from bushook.core.errors import HookError

logger = logging.getLogger("bushook.pidfile")


class PidFileError(HookError):
    """The PID file could not be written."""


def write_pidfile(path: str | Path) -> Path:
    """Write the current process id to `path`, creating parent directories."""
    pid_path = Path(path)
    try:
        pid_path.parent.mkdir(parents=True, exist_ok=True)
        pid_path.write_text(f"{os.getpid()}\n", encoding="utf-8")
    except OSError as exc:
        raise PidFileError(f"Cannot write PID file {pid_path}: {exc}") from exc
    logger.debug("Wrote PID file %s", pid_path)
    return pid_path


def remove_pidfile(path: str | Path) -> None:
    """Remove the PID file; a missing file is not an error."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Cannot remove PID file %s: %s", path, exc)
