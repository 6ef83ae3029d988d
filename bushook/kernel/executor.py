# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Command Executor — Runs one hook action against one message.

The payload is written to the child's stdin, which is then closed.
stdout and stderr share one pipe, so the captured output is the combined
stream in whatever order the child produced it. When the message expects
a reply, the full output is sent back whatever the exit status was.

No timeout is applied: a command that never exits holds its task forever.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from bushook.core.errors import ReplyTransportError
from bushook.kernel.bus import RedisBus
from bushook.kernel.routes import RouteEntry
from bushook.protocols.schema import BusMessage

logger = logging.getLogger("bushook.executor")


class OutcomeStatus(str, enum.Enum):
    SUCCESS = "success"
    PROCESS_ERROR = "process_error"
    SPAWN_ERROR = "spawn_error"
    REPLY_ERROR = "reply_error"


def ellipsis(text: str, length: int) -> str:
    """Cut `text` to `length` characters, marking the cut with '...'."""
    if len(text) > length:
        return text[:length] + "..."
    return text


@dataclass
class ExecutionOutcome:
    """Result of one execution, consumed by the reporter and then dropped."""

    status: OutcomeStatus
    output: bytes = b""
    exit_code: Optional[int] = None
    error: Optional[str] = None
    reply_error: Optional[str] = None  # kept even when a process error wins
    replied: bool = False
    duration_ms: float = 0.0

    @property
    def is_success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    def preview(self, length: int = 80) -> str:
        """Quoted, truncated output for log lines."""
        text = self.output.decode("utf-8", errors="replace")
        return json.dumps(ellipsis(text, length), ensure_ascii=False)


class CommandExecutor:
    """Spawns hook processes and delivers their output as replies."""

    def __init__(self, bus: RedisBus) -> None:
        self._bus = bus

    async def execute(
        self,
        entry: RouteEntry,
        msg: BusMessage,
        log: logging.Logger | logging.LoggerAdapter = logger,
    ) -> ExecutionOutcome:
        """
        Run `entry.action` with `msg.data` on stdin.

        Never raises for per-message failures; they come back as the
        outcome status:
          - SPAWN_ERROR: program missing, not executable, bad workdir or a
            NUL byte in the arguments (no reply is sent)
          - PROCESS_ERROR: non-zero exit (reply already sent)
          - REPLY_ERROR: exit 0 but the reply publish failed
        """
        action = entry.action
        if action.is_empty:
            return ExecutionOutcome(status=OutcomeStatus.SUCCESS)

        log.info('Execute command "%s"', ellipsis(action.display, 80))
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                *action.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=entry.workdir,
            )
        except (OSError, ValueError) as exc:
            return ExecutionOutcome(
                status=OutcomeStatus.SPAWN_ERROR,
                error=f"Failed to start command: {exc}",
                duration_ms=_elapsed_ms(started),
            )

        try:
            output, _ = await proc.communicate(msg.data)
        finally:
            if proc.returncode is None:
                # Cancelled mid-run: do not leave the child behind
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        exit_code = proc.returncode
        outcome = ExecutionOutcome(
            status=OutcomeStatus.SUCCESS,
            output=output,
            exit_code=exit_code,
        )

        if msg.expects_reply:
            try:
                await self._bus.respond(msg, output)
                outcome.replied = True
            except ReplyTransportError as exc:
                outcome.reply_error = str(exc)

        if exit_code != 0:
            outcome.status = OutcomeStatus.PROCESS_ERROR
            outcome.error = f"Failed to run command: exit status {exit_code}"
        elif outcome.reply_error:
            outcome.status = OutcomeStatus.REPLY_ERROR
            outcome.error = outcome.reply_error

        outcome.duration_ms = _elapsed_ms(started)
        return outcome


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)
