# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.
"""Unit tests for structured logging."""

import json
import logging

from bushook.core.logging import (
    PrefixFormatter,
    StructuredFormatter,
    execution_logger,
    new_execution_id,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("bushook.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_basic_fields(self):
        entry = json.loads(StructuredFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["module"] == "bushook.test"
        assert entry["message"] == "hello"
        assert "subject" not in entry

    def test_context_fields(self):
        entry = json.loads(StructuredFormatter().format(
            _record(subject="echo", execution_id="abc123")
        ))
        assert entry["subject"] == "echo"
        assert entry["execution_id"] == "abc123"


class TestPrefixFormatter:
    def test_prefix(self):
        line = PrefixFormatter().format(_record("Result: \"x\"", subject="echo", execution_id="abc"))
        assert line.endswith('INFO [echo]: [abc] Result: "x"')

    def test_no_context(self):
        assert PrefixFormatter().format(_record()).endswith("INFO hello")


class TestExecutionLogger:
    def test_ids_are_unique(self):
        assert len({new_execution_id() for _ in range(100)}) == 100

    def test_adapter_stamps_records(self, caplog):
        log = execution_logger(logging.getLogger("bushook.test"), "deploy.web")
        with caplog.at_level(logging.INFO, logger="bushook.test"):
            log.info("running")
        record = caplog.records[-1]
        assert record.subject == "deploy.web"
        assert record.execution_id == log.execution_id
