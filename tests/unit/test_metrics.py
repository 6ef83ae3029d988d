# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.
"""Unit tests for ExecutionStats."""

from bushook.core.metrics import ExecutionStats


class TestExecutionStats:
    def test_counter_increment(self):
        stats = ExecutionStats()
        stats.inc("executions_total")
        stats.inc("executions_total")
        assert stats.get_counter("executions_total") == 2

    def test_counter_default_zero(self):
        assert ExecutionStats().get_counter("nonexistent") == 0

    def test_duration_summary(self):
        stats = ExecutionStats()
        stats.observe_duration(100)
        stats.observe_duration(200)
        assert stats.snapshot()["execution_ms"] == {"count": 2, "avg": 150.0, "max": 200}

    def test_no_durations_no_summary(self):
        assert "execution_ms" not in ExecutionStats().snapshot()

    def test_duration_window(self):
        stats = ExecutionStats(window=2)
        for ms in (900, 10, 20):
            stats.observe_duration(ms)
        assert stats.duration_summary() == {"count": 2, "avg": 15.0, "max": 20}

    def test_reset(self):
        stats = ExecutionStats()
        stats.inc("x")
        stats.observe_duration(5)
        stats.reset()
        snap = stats.snapshot()
        assert snap["counters"] == {}
        assert "execution_ms" not in snap
