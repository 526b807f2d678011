from __future__ import annotations

import json
import logging
import sys

import pytest

from rfq_builder.logger import JsonFormatter, configure_logging, log_document_event


def test_json_formatter_includes_document_fields() -> None:
    logger = logging.getLogger("test-observability")
    record = logger.makeRecord(
        name=logger.name,
        level=logging.INFO,
        fn="test",
        lno=1,
        msg="normalized %s",
        args=("rfq-1",),
        exc_info=None,
        extra={
            "document_id": "doc-1",
            "stage": "normalization",
            "profile": "rfq",
            "latency_ms": 120,
            "outcome": "success",
            "violation_count": 0,
        },
    )
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "normalized rfq-1"
    assert payload["level"] == "INFO"
    assert payload["document_id"] == "doc-1"
    assert payload["stage"] == "normalization"
    assert payload["profile"] == "rfq"
    assert payload["latency_ms"] == 120
    assert payload["violation_count"] == 0
    assert "exception" not in payload


def test_json_formatter_includes_exception_text() -> None:
    logger = logging.getLogger("test-observability-exc")
    try:
        raise ValueError("bad number")
    except ValueError:
        record = logger.makeRecord(logger.name, logging.ERROR, "test", 1, "failed", (), exc_info=sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: bad number" in payload["exception"]


def test_log_document_event_only_sets_given_fields(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("test-observability-helper")
    with caplog.at_level(logging.INFO, logger=logger.name):
        log_document_event(logger, logging.INFO, "done", document_id="doc-22", stage="render", outcome="success")

    record = caplog.records[-1]
    assert record.document_id == "doc-22"
    assert record.stage == "render"
    assert record.outcome == "success"
    assert not hasattr(record, "latency_ms")
    assert not hasattr(record, "violation_count")


def test_configure_logging_installs_json_formatter() -> None:
    root = logging.getLogger()
    original_level = root.level
    original_handlers = list(root.handlers)
    original_formatters = [handler.formatter for handler in original_handlers]
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        assert root.handlers
        assert all(isinstance(handler.formatter, JsonFormatter) for handler in root.handlers)
    finally:
        root.setLevel(original_level)
        for handler in root.handlers[len(original_handlers):]:
            root.removeHandler(handler)
        for handler, formatter in zip(original_handlers, original_formatters):
            handler.setFormatter(formatter)
