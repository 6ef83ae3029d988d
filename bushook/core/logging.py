# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Structured Logging — JSON (or prefixed text) format with execution context.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from typing import Any, MutableMapping, Tuple

CONTEXT_KEYS = ("subject", "execution_id")


class StructuredFormatter(logging.Formatter):
    """JSON log formatter with subject/execution context."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        # Attach context if available
        for key in CONTEXT_KEYS:
            val = getattr(record, key, None)
            if val:
                log_entry[key] = val

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


class PrefixFormatter(logging.Formatter):
    """Plain text formatter: `<time> [subject]: [execution_id] message`."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        prefix = "".join(
            f"[{getattr(record, key)}]: " if key == "subject" else f"[{getattr(record, key)}] "
            for key in CONTEXT_KEYS
            if getattr(record, key, None)
        )
        if not prefix:
            return line
        head, sep, message = line.partition(f"{record.levelname} ")
        return f"{head}{sep}{prefix}{message}"


class ExecutionLogger(logging.LoggerAdapter):
    """Logger adapter that stamps every record with subject and execution id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    @property
    def execution_id(self) -> str:
        return self.extra["execution_id"]


def new_execution_id() -> str:
    """Short identifier unique to one execution."""
    return uuid.uuid4().hex[:16]


def execution_logger(logger: logging.Logger, subject: str) -> ExecutionLogger:
    """Create a per-execution logger for a message on `subject`."""
    return ExecutionLogger(logger, {"subject": subject, "execution_id": new_execution_id()})


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure root logging for the service."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(PrefixFormatter() if fmt == "text" else StructuredFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)
