"""Unit tests for the JSON log formatter."""

from __future__ import annotations

import json
import logging
import sys

from merchant_copilot.logging_config import JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="merchant_copilot.services.orchestrator",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Entering search stage %s",
        args=("content_search",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_core_fields(self) -> None:
        data = json.loads(JSONFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "merchant_copilot.services.orchestrator"
        assert data["message"] == "Entering search stage content_search"
        assert "timestamp" in data

    def test_whitelisted_extras_included(self) -> None:
        data = json.loads(
            JSONFormatter().format(_record(stage="content_search", result_count=2, secret="x"))
        )
        assert data["stage"] == "content_search"
        assert data["result_count"] == 2
        assert "secret" not in data

    def test_exception_rendered(self) -> None:
        try:
            raise RuntimeError("index offline")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert "index offline" in data["exception"]


def test_setup_logging_installs_json_handler() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("azure").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
