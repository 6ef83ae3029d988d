# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Hook Dispatcher — Connects the Route Table to the subject bus.

One subscription per route entry. Every delivered message gets its own
asyncio task, so a slow command never holds up delivery of the next
message. There is no cap on concurrent executions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from bushook.core.logging import execution_logger
from bushook.kernel.bus import RedisBus, Subscription
from bushook.kernel.executor import CommandExecutor
from bushook.kernel.reporter import ResultReporter
from bushook.kernel.routes import RouteEntry, RouteTable
from bushook.protocols.schema import BusMessage

logger = logging.getLogger("bushook.dispatcher")


class HookDispatcher:
    """
    Registers route entries on the bus and runs them per message.

    Message lifecycle (one pass, no retry):
      Received → Dispatched → Executing → Completed/Failed → Reported
    """

    def __init__(
        self,
        bus: RedisBus,
        executor: Optional[CommandExecutor] = None,
        reporter: Optional[ResultReporter] = None,
    ) -> None:
        self._bus = bus
        self._executor = executor or CommandExecutor(bus)
        self._reporter = reporter or ResultReporter()
        self._subscriptions: List[Subscription] = []
        self._inflight: Set[asyncio.Task] = set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions)

    async def register(self, table: RouteTable) -> None:
        """
        Subscribe every entry of `table`.

        A rejected subscription (SubjectError / BusError) propagates: it is
        a startup failure, not a per-message one.
        """
        for entry in table:
            sub = await self._bus.subscribe(entry.subject, self._make_handler(entry))
            self._subscriptions.append(sub)
            logger.info("[%s]: Subscribed", entry.subject)

    def _make_handler(self, entry: RouteEntry):
        async def _on_message(msg: BusMessage) -> None:
            self.dispatch(entry, msg)
        return _on_message

    def dispatch(self, entry: RouteEntry, msg: BusMessage) -> asyncio.Task:
        """Start an independent execution task for `msg` and return it."""
        task = asyncio.create_task(self._run(entry, msg))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run(self, entry: RouteEntry, msg: BusMessage) -> None:
        log = execution_logger(logger, entry.subject)
        try:
            outcome = await self._executor.execute(entry, msg, log)
        except Exception as exc:
            log.exception("Error: unexpected failure: %s", exc)
            return
        self._reporter.report(entry, msg, outcome, log)

    async def wait_idle(self) -> None:
        """Wait until every in-flight execution has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def unregister(self) -> None:
        """Drop all subscriptions; running executions are left to finish."""
        for sub in self._subscriptions:
            await self._bus.unsubscribe(sub)
        self._subscriptions.clear()
