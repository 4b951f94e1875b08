"""Tests for structured logging module."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider

from horamed.core.logging import (
    _NOISE_LOGGERS,
    _service_context,
    add_horamed_context,
    configure_logging,
    get_service_context,
    set_service_context,
)
from horamed.stock import StockProjectionEngine

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset logging and service context between tests."""
    token = _service_context.set(None)
    yield
    _service_context.reset(token)
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


@pytest.fixture
def tracer():
    provider = TracerProvider()
    yield provider.get_tracer("test")
    provider.shutdown()


def _reset_otel_global_state():
    trace._TRACER_PROVIDER_SET_ONCE = trace.Once()
    trace._TRACER_PROVIDER = None


def _json_lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# add_horamed_context
# ---------------------------------------------------------------------------


class TestServiceContext:
    def test_set_and_get(self):
        set_service_context("horamed-api")
        assert get_service_context() == "horamed-api"

    def test_default_is_none(self):
        assert get_service_context() is None

    def test_processor_injects_service(self):
        set_service_context("horamed-worker")
        result = add_horamed_context(None, "info", {"event": "test"})
        assert result["service"] == "horamed-worker"


class TestSpanContext:
    def test_zeroed_ids_when_no_span(self):
        result = add_horamed_context(None, "info", {"event": "test"})
        assert result["trace_id"] == "0" * 32
        assert result["span_id"] == "0" * 16
        assert "item_id" not in result

    def test_real_ids_when_span_active(self, tracer):
        with tracer.start_as_current_span("test-span") as span:
            result = add_horamed_context(None, "info", {"event": "test"})
            ctx = span.get_span_context()

        assert result["trace_id"] == format(ctx.trace_id, "032x")
        assert result["span_id"] == format(ctx.span_id, "016x")

    def test_span_ids_are_copied(self, tracer):
        with tracer.start_as_current_span("horamed.stock.decrement") as span:
            span.set_attribute("horamed.item_id", "item-42")
            span.set_attribute("horamed.units_left", 3)
            result = add_horamed_context(None, "info", {"event": "test"})

        assert result["item_id"] == "item-42"
        assert "units_left" not in result
        assert "user_id" not in result

    def test_explicit_field_wins_over_span(self, tracer):
        with tracer.start_as_current_span("horamed.stock.overview") as span:
            span.set_attribute("horamed.user_id", "user-1")
            result = add_horamed_context(None, "info", {"event": "test", "user_id": "user-9"})

        assert result["user_id"] == "user-9"


# ---------------------------------------------------------------------------
# configure_logging()
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_text_format_installs_console_renderer(self):
        configure_logging(fmt="text")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_format_installs_json_renderer(self):
        configure_logging(fmt="json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_reconfigure_does_not_duplicate_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_sets_service_context(self):
        configure_logging(service_name="horamed-api")
        assert get_service_context() == "horamed-api"

    def test_noise_loggers_suppressed(self):
        configure_logging(level="DEBUG")
        for name in _NOISE_LOGGERS:
            assert logging.getLogger(name).level >= logging.WARNING

    def test_log_level_applied(self):
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG


class TestLogFile:
    def test_no_file_handler_without_log_root(self):
        configure_logging()
        root = logging.getLogger()
        assert not [h for h in root.handlers if isinstance(h, logging.FileHandler)]

    def test_file_lands_under_service_name(self, tmp_path: Path):
        configure_logging(log_root=tmp_path, service_name="horamed-api")
        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
        assert str(file_handlers[0].baseFilename).endswith("horamed/horamed-api.log")

    def test_file_output_is_json(self, tmp_path: Path):
        configure_logging(fmt="text", log_root=tmp_path, service_name="jsontest")
        logging.getLogger("horamed.test").warning("stock low")

        data = _json_lines(tmp_path / "horamed" / "jsontest.log")[-1]
        assert data["event"] == "stock low"
        assert data["service"] == "jsontest"
        assert data["trace_id"] == "0" * 32

    async def test_engine_records_carry_item_id(self, tmp_path: Path, memory_pool):
        _reset_otel_global_state()
        provider = TracerProvider()
        trace.set_tracer_provider(provider)
        try:
            configure_logging(level="INFO", log_root=tmp_path, service_name="engine")
            item_id = memory_pool.add_item()
            memory_pool.set_stock(item_id, units_left=2)

            await StockProjectionEngine(memory_pool).decrement_on_dose_taken(item_id)
        finally:
            provider.shutdown()
            _reset_otel_global_state()

        records = [
            r
            for r in _json_lines(tmp_path / "horamed" / "engine.log")
            if r["logger"] == "horamed.stock.engine"
        ]
        assert records
        assert {r["item_id"] for r in records} == {str(item_id)}
        assert all(r["trace_id"] != "0" * 32 for r in records)
