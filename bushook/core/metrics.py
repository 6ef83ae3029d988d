# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Execution Stats — Per-process tallies of hook outcomes.

The reporter feeds one record per execution; the totals are written to
the log when the service stops.
"""

from __future__ import annotations

import time
from collections import Counter, deque
from typing import Any, Deque, Dict, Optional

# Durations kept for the execution_ms summary
DURATION_WINDOW = 1000


class ExecutionStats:
    """Outcome counters plus a rolling summary of execution durations."""

    def __init__(self, window: int = DURATION_WINDOW) -> None:
        self._counts: Counter[str] = Counter()
        self._durations: Deque[float] = deque(maxlen=window)
        self._started = time.monotonic()

    def inc(self, name: str) -> None:
        self._counts[name] += 1

    def get_counter(self, name: str) -> int:
        return self._counts[name]

    def observe_duration(self, ms: float) -> None:
        self._durations.append(ms)

    def duration_summary(self) -> Optional[Dict[str, float]]:
        if not self._durations:
            return None
        return {
            "count": len(self._durations),
            "avg": round(sum(self._durations) / len(self._durations), 2),
            "max": round(max(self._durations), 2),
        }

    def snapshot(self) -> Dict[str, Any]:
        snap: Dict[str, Any] = {
            "uptime_seconds": round(time.monotonic() - self._started, 1),
            "counters": dict(self._counts),
        }
        summary = self.duration_summary()
        if summary:
            snap["execution_ms"] = summary
        return snap

    def reset(self) -> None:
        self._counts.clear()
        self._durations.clear()
        self._started = time.monotonic()


execution_stats = ExecutionStats()
