"""Structured logging — JSONFormatter surfaces domain extras."""

import json
import logging

from gpl_monitor.infrastructure.observability import JSONFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "gpl_monitor.test", logging.INFO, __file__, 1, "Heat level changed", None, None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_base_fields():
    payload = json.loads(JSONFormatter().format(_record()))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "gpl_monitor.test"
    assert payload["message"] == "Heat level changed"
    assert "timestamp" in payload


def test_json_formatter_includes_domain_extras():
    payload = json.loads(JSONFormatter().format(
        _record(session_id="cyl-1", heat_level=2, store_mode="degraded"),
    ))
    assert payload["session_id"] == "cyl-1"
    assert payload["heat_level"] == 2
    assert payload["store_mode"] == "degraded"
    assert "error_code" not in payload
