"""Tests for structured logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog

from subtrack.core.logging import add_otel_ids, configure_logging, subscription_context

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.contextvars.clear_contextvars()
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def _last_json_line(path: Path) -> dict:
    for handler in logging.getLogger().handlers:
        handler.flush()
    return json.loads(path.read_text(encoding="utf-8").strip().splitlines()[-1])


class TestOtelIds:
    def test_zeroed_outside_a_span(self):
        result = add_otel_ids(None, "info", {"event": "test"})
        assert result["trace_id"] == "0" * 32
        assert result["span_id"] == "0" * 16

    def test_ids_from_active_span(self):
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider()
        with provider.get_tracer("test").start_as_current_span("update"):
            result = add_otel_ids(None, "info", {"event": "test"})
        provider.shutdown()

        assert result["trace_id"] != "0" * 32
        assert len(result["span_id"]) == 16


class TestConfigureLogging:
    def test_text_format_uses_console_renderer(self):
        configure_logging(fmt="text")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_format_uses_json_renderer(self):
        configure_logging(fmt="json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_level_applied(self):
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_request_log_quietened(self):
        configure_logging()
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_reconfigure_replaces_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestLogFile:
    def test_records_are_json_with_app_name(self, tmp_path: Path):
        configure_logging(log_root=tmp_path, app_name="subtrack")
        logging.getLogger("subtrack.tools").warning("Deleted subscription %s", "abc")

        record = _last_json_line(tmp_path / "subtrack.log")
        assert record["event"] == "Deleted subscription abc"
        assert record["app"] == "subtrack"
        assert record["level"] == "warning"
        assert record["logger"] == "subtrack.tools"

    def test_subscription_context_is_bound_inside_block_only(self, tmp_path: Path):
        configure_logging(level="INFO", log_root=tmp_path)
        log = logging.getLogger("subtrack.tools")

        with subscription_context("1234", status="cancelled"):
            log.info("inside")
        inside = _last_json_line(tmp_path / "subtrack.log")
        log.info("outside")
        outside = _last_json_line(tmp_path / "subtrack.log")

        assert inside["subscription_id"] == "1234"
        assert inside["status"] == "cancelled"
        assert "subscription_id" not in outside
        assert outside["app"] == "subtrack"
