"""Structured logging — JSON formatter fields and idempotent setup."""

import json
import logging

from coachflow.infrastructure.observability import JSONFormatter, setup_logging


def _record(**extra):
    record = logging.LogRecord(
        "coachflow.test", logging.INFO, __file__, 1, "hello %s", ("world",), None,
    )
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_formatter_includes_present_extras_only():
    line = JSONFormatter().format(_record(user_id="u1", handoff_id="handoff_1"))
    data = json.loads(line)
    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["user_id"] == "u1"
    assert data["handoff_id"] == "handoff_1"
    assert "tool_name" not in data


def test_setup_logging_is_idempotent():
    setup_logging("DEBUG", "json")
    setup_logging("INFO", "text")
    named = [h for h in logging.root.handlers if h.get_name() == "coachflow"]
    assert len(named) == 1
    assert logging.root.level == logging.INFO
