# tests/common/test_logger.py
"""
Unit тесты для модуля логирования (src/common/logger.py).
"""

import json
import logging
from unittest.mock import patch

import pytest

from src.common.logger import (
    DEFAULT_LOGGER_NAME,
    ColoredFormatter,
    JsonFormatter,
    _get_caller_info,
    _loggers,
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
    setup_logging,
)
from src.common.constants import TypeMsg


def make_record(level: int = logging.INFO, msg: str = "Test message") -> logging.LogRecord:
    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    record.module = "test_module"
    record.funcName = "test_function"
    return record


class TestJsonFormatter:
    """Тесты для JsonFormatter."""

    def test_format_basic_record(self) -> None:
        data = json.loads(JsonFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["function"] == "test_function"
        assert data["line"] == 10
        assert data["timestamp"].endswith("Z")

    def test_format_with_extra_data(self) -> None:
        record = make_record(logging.WARNING)
        record.extra_data = {"driver_id": "d1"}

        data = json.loads(JsonFormatter().format(record))

        assert data["extra"] == {"driver_id": "d1"}

    def test_format_with_exception(self) -> None:
        record = make_record(logging.ERROR)
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestColoredFormatter:
    """Тесты для ColoredFormatter."""

    def test_format_with_caller_info(self) -> None:
        record = make_record()
        record.extra_data = {
            "caller_function": "apply_event",
            "caller_module": "tracker",
            "caller_file": "tracker.py",
            "caller_line": 42,
        }

        result = ColoredFormatter().format(record)

        assert "[INFO]" in result
        assert "tracker.apply_event()" in result
        assert "tracker.py:42" in result


class TestGetLogger:
    """Тесты для get_logger."""

    def setup_method(self) -> None:
        _loggers.clear()
        for logger in logging.Logger.manager.loggerDict.values():
            if isinstance(logger, logging.Logger):
                logger.handlers.clear()

    def test_get_logger_returns_cached_logger(self) -> None:
        assert get_logger("test_logger") is get_logger("test_logger")

    def test_get_logger_has_console_handler(self) -> None:
        logger = get_logger("test_console")

        assert len(logger.handlers) >= 1
        assert logger.propagate is False

    def test_get_logger_handles_missing_settings(self) -> None:
        with patch.dict("sys.modules", {"src.config": None}):
            logger = get_logger("test_no_settings")

        assert logger.level == logging.DEBUG


class TestSetupLogging:
    """Тесты для setup_logging."""

    def test_setup_logging_quiets_third_party(self) -> None:
        import src.common.logger as logger_module

        with patch.object(logger_module, "_LOGGING_INITIALIZED", False):
            setup_logging()

        assert DEFAULT_LOGGER_NAME in _loggers
        assert logging.getLogger("asyncpg").level == logging.WARNING
        assert logging.getLogger("aio_pika").level == logging.WARNING


class TestGetCallerInfo:

    def test_get_caller_info_contains_caller_data(self) -> None:
        def wrapper():
            return _get_caller_info()

        info = wrapper()

        assert info["caller_function"] == "test_get_caller_info_contains_caller_data"


class TestLogFunctions:
    """Тесты для асинхронных функций логирования."""

    @pytest.mark.asyncio
    async def test_log_info_basic(self) -> None:
        with patch.object(logging.Logger, "info") as mock_info:
            await log_info("Test message")

        assert "Test message" in mock_info.call_args[0]

    @pytest.mark.asyncio
    async def test_log_info_dispatches_by_type(self) -> None:
        with patch.object(logging.Logger, "debug") as mock_debug:
            await log_info("Debug message", type_msg=TypeMsg.DEBUG)
        with patch.object(logging.Logger, "warning") as mock_warning:
            await log_info("Warning message", type_msg=TypeMsg.WARNING)
        with patch.object(logging.Logger, "critical") as mock_critical:
            await log_info("Critical message", type_msg=TypeMsg.CRITICAL)

        mock_debug.assert_called_once()
        mock_warning.assert_called_once()
        mock_critical.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_info_with_extra(self) -> None:
        with patch.object(logging.Logger, "info") as mock_info:
            await log_info("Test message", extra={"trip_id": "t1"})

        assert mock_info.call_args.kwargs["extra"]["extra_data"]["trip_id"] == "t1"

    @pytest.mark.asyncio
    async def test_helpers(self) -> None:
        with patch.object(logging.Logger, "debug") as mock_debug:
            await log_debug("d")
        with patch.object(logging.Logger, "warning") as mock_warning:
            await log_warning("w")

        mock_debug.assert_called_once()
        mock_warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_error_with_exc_info(self) -> None:
        with patch.object(logging.Logger, "error") as mock_error:
            await log_error("Error", exc_info=True)

        assert mock_error.call_args.kwargs["exc_info"] is True
