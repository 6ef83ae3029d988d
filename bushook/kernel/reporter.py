# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Result Reporter — One log record (and metric update) per execution.
"""

from __future__ import annotations

import logging
from typing import Optional

from bushook.core.metrics import ExecutionStats, execution_stats
from bushook.kernel.executor import ExecutionOutcome, OutcomeStatus
from bushook.kernel.routes import RouteEntry
from bushook.protocols.schema import BusMessage

logger = logging.getLogger("bushook.reporter")


class ResultReporter:
    """Turns an ExecutionOutcome into a log line. Never raises."""

    def __init__(self, stats: Optional[ExecutionStats] = None, preview_length: int = 80) -> None:
        self._stats = stats or execution_stats
        self._preview_length = preview_length

    def report(
        self,
        entry: RouteEntry,
        msg: BusMessage,
        outcome: ExecutionOutcome,
        log: logging.Logger | logging.LoggerAdapter = logger,
    ) -> None:
        try:
            self._record(outcome)
            self._log(entry, outcome, log)
        except Exception:
            # A broken log sink must not take the execution down with it
            pass

    def _record(self, outcome: ExecutionOutcome) -> None:
        self._stats.inc("executions_total")
        self._stats.inc(f"executions_{outcome.status.value}")
        if outcome.replied:
            self._stats.inc("replies_sent")
        if outcome.reply_error:
            self._stats.inc("reply_errors")
        if outcome.status is not OutcomeStatus.SPAWN_ERROR and outcome.duration_ms:
            self._stats.observe_duration(outcome.duration_ms)

    def _log(
        self,
        entry: RouteEntry,
        outcome: ExecutionOutcome,
        log: logging.Logger | logging.LoggerAdapter,
    ) -> None:
        if entry.action.is_empty:
            log.debug("No action configured, message ignored")
            return

        preview = outcome.preview(self._preview_length)
        if outcome.status is OutcomeStatus.SUCCESS:
            log.info("Result: %s", preview)
        elif outcome.status is OutcomeStatus.PROCESS_ERROR:
            if outcome.reply_error:
                log.error("Error: %s", outcome.reply_error)
            log.error("Error: %s; Result: %s", outcome.error, preview)
        elif outcome.status is OutcomeStatus.SPAWN_ERROR:
            log.error("Error: %s", outcome.error)
        else:
            log.error("Error: %s; Result: %s", outcome.error, preview)
