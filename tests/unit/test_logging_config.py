"""Unit tests for structlog logging configuration and request context binding."""

import io
import json
import logging

import pytest
import structlog
from structlog.contextvars import get_contextvars

from shared.observability import LogContext, bind_context, clear_context, configure_logging, get_logger


@pytest.fixture
def stream():
    root = logging.getLogger()
    level = root.level
    buffer = io.StringIO()
    yield buffer
    for handler in list(root.handlers):
        if handler.get_name() == "sentence_gateway":
            root.removeHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()
    clear_context()


def _entries(buffer):
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestLogContext:
    def test_binds_and_unbinds(self):
        with LogContext(rpc_method="Translate", request_id="abc123"):
            assert get_contextvars() == {"rpc_method": "Translate", "request_id": "abc123"}
        assert get_contextvars() == {}

    def test_restores_outer_values(self):
        bind_context(request_id="outer", region="eu")
        try:
            with LogContext(request_id="inner"):
                assert get_contextvars() == {"request_id": "inner", "region": "eu"}
            assert get_contextvars() == {"request_id": "outer", "region": "eu"}
        finally:
            clear_context()

    def test_unbinds_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext(request_id="r2"):
                raise RuntimeError("boom")
        assert "request_id" not in get_contextvars()


class TestConfigureLogging:
    def test_stdlib_records_render_as_json(self, stream):
        configure_logging("sentence_service", log_level="INFO", json_output=True, stream=stream)

        with LogContext(rpc_method="GenerateSentence"):
            logging.getLogger("shared.billing.spending_recorder").info("Recorded spending")

        entry = _entries(stream)[-1]
        assert entry["event"] == "Recorded spending"
        assert entry["service"] == "sentence_service"
        assert entry["rpc_method"] == "GenerateSentence"
        assert entry["logger"] == "shared.billing.spending_recorder"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_structlog_logger_shares_output(self, stream):
        configure_logging("sentence_service", stream=stream)

        get_logger("sentence_service").warning("quota near limit", remaining_micros=12)

        entry = _entries(stream)[-1]
        assert entry["event"] == "quota near limit"
        assert entry["remaining_micros"] == 12

    def test_level_filters_records(self, stream):
        configure_logging("sentence_service", log_level="WARNING", stream=stream)

        logging.getLogger("shared.billing.test").info("hidden")

        assert "hidden" not in stream.getvalue()

    def test_reconfigure_replaces_own_handler(self, stream):
        first = configure_logging("sentence_service", stream=stream)
        second = configure_logging("sentence_service", stream=stream)

        handlers = logging.getLogger().handlers
        assert second in handlers
        assert first not in handlers
