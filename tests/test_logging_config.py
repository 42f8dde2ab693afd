"""
Unit tests for logging configuration.

Covers the formatters, the performance timer, handler setup under the cache
directory and the module-level helpers with and without setup.
"""

import json
import logging
import sys
import tempfile
import time
from pathlib import Path
from unittest.mock import Mock
import pytest

import femdown.logging_config
from femdown.logging_config import (
    PerformanceTimer,
    ContextualFormatter,
    FemdownLogger,
    PERFORMANCE_LOGGER,
    setup_logging,
    get_logger,
    log_with_context,
    log_api_request,
    performance_timer
)
from femdown.models import AppConfig


def cleanup_logging():
    """Close and drop handlers so temp directories can be removed."""
    for logger in (logging.getLogger(), logging.getLogger(PERFORMANCE_LOGGER)):
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
    logging.getLogger(PERFORMANCE_LOGGER).propagate = True
    femdown.logging_config._logger_instance = None


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info
    )


class TestPerformanceTimer:
    """Test the PerformanceTimer context manager."""

    def test_performance_timer_success(self):
        logger = Mock(spec=logging.Logger)
        timer = PerformanceTimer("test_operation", logger, logging.DEBUG)

        with timer:
            time.sleep(0.01)

        assert logger.log.call_count == 2
        logger.log.assert_any_call(logging.DEBUG, "Starting test_operation")
        assert "Completed test_operation in" in logger.log.call_args_list[1][0][1]
        assert timer.duration > 0

    def test_performance_timer_with_exception(self):
        logger = Mock(spec=logging.Logger)

        with pytest.raises(ValueError):
            with PerformanceTimer("failing_operation", logger):
                raise ValueError("Test error")

        assert "Failed failing_operation after" in logger.error.call_args[0][0]

    def test_duration_before_completion(self):
        timer = PerformanceTimer("op", Mock(spec=logging.Logger))
        assert timer.duration is None


class TestContextualFormatter:
    """Test the ContextualFormatter class."""

    def test_text_formatter_basic(self):
        formatter = ContextualFormatter(include_context=False)
        formatted = formatter.format(make_record())
        assert "Test message" in formatted
        assert "test_logger" in formatted
        assert "INFO" in formatted

    def test_text_formatter_with_context(self):
        formatter = ContextualFormatter(include_context=True)
        record = make_record()
        record.context = {"course_id": "react-v8", "lessons": 3}
        record.duration = 1.5

        formatted = formatter.format(record)
        assert "[test.py:42]" in formatted
        assert "Context: course_id=react-v8, lessons=3" in formatted
        assert "Duration: 1.500s" in formatted

    def test_json_formatter(self):
        formatter = ContextualFormatter(json_format=True)
        record = make_record()
        record.context = {"path": Path("/tmp/x")}

        data = json.loads(formatter.format(record))
        assert data['message'] == "Test message"
        assert data['level'] == "INFO"
        assert data['context'] == {"path": "/tmp/x"}

    def test_json_formatter_with_exception(self):
        formatter = ContextualFormatter(json_format=True)
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(formatter.format(record))
        assert data['exception']['type'] == "RuntimeError"
        assert data['exception']['message'] == "boom"


class TestFemdownLogger:
    """Test handler setup."""

    @pytest.fixture
    def temp_config(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            yield AppConfig(cache_directory=temp_dir, default_output_dir=temp_dir)
            cleanup_logging()

    def test_logger_initialization(self, temp_config):
        manager = FemdownLogger(temp_config)

        assert manager.log_dir == temp_config.cache_path / "logs"
        assert manager.log_dir.is_dir()
        assert manager.console_handler.level == logging.WARNING
        assert logging.getLogger(PERFORMANCE_LOGGER).propagate is False

    def test_get_logger_cached(self, temp_config):
        manager = FemdownLogger(temp_config)
        logger1 = manager.get_logger("femdown.a")
        assert manager.get_logger("femdown.a") is logger1
        assert manager.get_logger("femdown.b") is not logger1

    def test_log_with_context(self, temp_config):
        manager = FemdownLogger(temp_config)
        logger = Mock(spec=logging.Logger)
        logger.name = "femdown.test"
        logger.makeRecord.return_value = Mock()

        manager.log_with_context(logger, logging.INFO, "Message", {"a": 1}, duration=0.5)

        record = logger.handle.call_args[0][0]
        assert record.context == {"a": 1}
        assert record.duration == 0.5

    def test_log_with_context_disabled_level(self, temp_config):
        manager = FemdownLogger(temp_config)
        logger = Mock(spec=logging.Logger)
        logger.isEnabledFor.return_value = False

        manager.log_with_context(logger, logging.DEBUG, "Message")
        logger.handle.assert_not_called()

    @pytest.mark.parametrize("status_code,level", [
        (200, logging.DEBUG),
        (404, logging.WARNING),
        (503, logging.ERROR),
    ])
    def test_log_api_request_levels(self, temp_config, status_code, level):
        manager = FemdownLogger(temp_config)
        logger = Mock(spec=logging.Logger)
        logger.name = "femdown.api"
        logger.makeRecord.return_value = Mock()

        manager.log_api_request(logger, "GET", "https://api.example.com", status_code=status_code)

        assert logger.makeRecord.call_args[0][1] == level
        assert logger.makeRecord.call_args[0][4] == f"API GET https://api.example.com -> {status_code}"

    def test_configure_debug_mode(self, temp_config):
        manager = FemdownLogger(temp_config)
        manager.configure_debug_mode(True)
        assert manager.console_handler.level == logging.DEBUG
        manager.configure_debug_mode(False)
        assert manager.console_handler.level == logging.WARNING

    def test_log_files_written(self, temp_config):
        manager = FemdownLogger(temp_config)
        logger = manager.get_logger("femdown.test")
        log_with_context(logger, logging.ERROR, "Something broke", {"course_id": "react-v8"})

        femdown.logging_config._logger_instance = manager
        log_with_context(logger, logging.ERROR, "Something else broke", {"course_id": "react-v8"})
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "Something else broke" in (manager.log_dir / "errors.log").read_text()
        debug_log = manager.log_dir / "debug.jsonl"
        debug_lines = [json.loads(line) for line in debug_log.read_text().splitlines()]
        assert debug_lines[-1]['context'] == {"course_id": "react-v8"}


class TestGlobalFunctions:
    """Test module-level helpers."""

    def teardown_method(self):
        cleanup_logging()

    def test_get_logger_without_setup(self):
        femdown.logging_config._logger_instance = None
        assert get_logger("femdown.x") is logging.getLogger("femdown.x")

    def test_fallbacks_without_setup(self):
        femdown.logging_config._logger_instance = None
        logger = Mock(spec=logging.Logger)

        log_with_context(logger, logging.INFO, "Message", {"a": 1})
        logger.log.assert_called_once_with(logging.INFO, "Message")

        log_api_request(logger, "GET", "https://example.com")
        logger.debug.assert_called_once_with("API GET https://example.com")

        with performance_timer("op", logger) as timer:
            pass
        assert timer.duration is not None

    def test_setup_logging(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            instance = setup_logging(AppConfig(cache_directory=temp_dir))
            assert femdown.logging_config._logger_instance is instance
            assert get_logger("femdown.y") is instance.get_logger("femdown.y")
            cleanup_logging()
