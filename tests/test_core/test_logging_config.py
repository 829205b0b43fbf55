import json
import logging
import sys
from unittest.mock import patch

import pytest

from core.config import Settings
from core.logging_config import (
    ConsoleFormatter,
    JSONLineFormatter,
    RequestContextFilter,
    get_logging_config,
    log_duration,
    set_correlation_id,
    setup_logging,
)


def make_record(message="hello", **extra):
    record = logging.LogRecord(
        name="services.bubble_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLoggingConfig:
    """Test the dictConfig builder."""

    def test_development_uses_console_formatter(self):
        config = get_logging_config("development", "debug")

        assert config["handlers"]["console"]["formatter"] == "console"
        assert config["loggers"]["services"]["level"] == "DEBUG"
        assert config["loggers"]["sqlalchemy.engine"]["level"] == "WARNING"

    def test_other_environments_use_json(self):
        config = get_logging_config("production", "INFO")

        assert config["handlers"]["console"]["formatter"] == "json"

    def test_log_file_handler(self, tmp_path):
        log_file = str(tmp_path / "bubbles.log")

        config = get_logging_config("production", "INFO", log_file)

        assert config["handlers"]["file"]["filename"] == log_file
        assert config["loggers"]["api"]["handlers"] == ["console", "file"]
        assert "file" in config["root"]["handlers"]

    def test_setup_logging_applies_settings(self):
        setup_logging(Settings(ENVIRONMENT="production", LOG_LEVEL="WARNING"))

        logger = logging.getLogger("services")
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONLineFormatter)


class TestRequestContextFilter:
    def test_adds_current_correlation_id(self):
        set_correlation_id("corr-42")
        record = make_record()

        assert RequestContextFilter().filter(record) is True
        assert record.correlation_id == "corr-42"

    def test_keeps_explicit_correlation_id(self):
        set_correlation_id("corr-42")
        record = make_record(correlation_id="explicit")

        RequestContextFilter().filter(record)

        assert record.correlation_id == "explicit"


class TestFormatters:
    def test_json_line(self):
        record = make_record("Vote +1 on bubble b-1", bubble_id="b-1", delta=1, correlation_id="corr-7")

        data = json.loads(JSONLineFormatter().format(record))

        assert data["level"] == "info"
        assert data["logger"] == "services.bubble_service"
        assert data["msg"] == "Vote +1 on bubble b-1"
        assert data["correlation_id"] == "corr-7"
        assert data["bubble_id"] == "b-1"
        assert data["delta"] == 1

    def test_json_line_ignores_unknown_extras(self):
        record = make_record(internal_flag=True)

        assert "internal_flag" not in json.loads(JSONLineFormatter().format(record))

    def test_json_line_exception(self):
        try:
            raise ValueError("bad coordinate")
        except ValueError:
            record = make_record("failed")
            record.exc_info = sys.exc_info()

        data = json.loads(JSONLineFormatter().format(record))

        assert data["error"]["type"] == "ValueError"
        assert data["error"]["detail"] == "bad coordinate"

    def test_console_line(self):
        record = make_record("Broadcast cleanup", event_type="cleanup", delivered=2, correlation_id="corr-9")

        output = ConsoleFormatter().format(record)

        assert "services.bubble_service: Broadcast cleanup" in output
        assert "req=corr-9 event_type=cleanup delivered=2" in output


class TestLogDuration:
    async def test_returns_result(self):
        logger = logging.getLogger("api.test")

        @log_duration(logger)
        async def run_cycle(value):
            return value * 2

        with patch.object(logger, "info") as mock_info:
            assert await run_cycle(4) == 8

        assert run_cycle.__name__ == "run_cycle"
        assert "duration_ms" in mock_info.call_args.kwargs["extra"]

    async def test_logs_and_reraises(self):
        logger = logging.getLogger("api.test")

        @log_duration(logger)
        async def explode():
            raise RuntimeError("boom")

        with patch.object(logger, "error") as mock_error:
            with pytest.raises(RuntimeError):
                await explode()

        assert mock_error.call_args.kwargs["extra"]["error_type"] == "RuntimeError"
