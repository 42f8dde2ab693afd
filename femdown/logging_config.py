"""
Logging configuration for femdown.

Console output stays quiet (warnings and errors) so it does not fight with the
progress line; everything else goes to rotating files under the cache
directory, including a JSON-lines debug log with the structured context that
modules attach through ``log_with_context``.
"""

import json
import logging
import logging.handlers
import sys
import time
import traceback
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from .models import AppConfig


PERFORMANCE_LOGGER = 'femdown.performance'


class PerformanceTimer:
    """Context manager for measuring and logging performance metrics."""

    def __init__(self, operation_name: str, logger: logging.Logger, log_level: int = logging.DEBUG):
        self.operation_name = operation_name
        self.logger = logger
        self.log_level = log_level
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.log(self.log_level, f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        duration = self.end_time - self.start_time

        if exc_type is None:
            self.logger.log(self.log_level, f"Completed {self.operation_name} in {duration:.3f}s")
        else:
            self.logger.error(f"Failed {self.operation_name} after {duration:.3f}s: {exc_val}")

    @property
    def duration(self) -> Optional[float]:
        """Get the duration of the operation if completed."""
        if self.start_time is not None and self.end_time is not None:
            return self.end_time - self.start_time
        return None


class ContextualFormatter(logging.Formatter):
    """Formatter that appends a record's ``context`` dict, as text or as JSON."""

    def __init__(self, include_context: bool = True, json_format: bool = False):
        self.include_context = include_context
        self.json_format = json_format

        if json_format:
            super().__init__()
        else:
            fmt = '%(asctime)s - %(name)s - %(levelname)s'
            if include_context:
                fmt += ' - [%(filename)s:%(lineno)d]'
            fmt += ' - %(message)s'
            super().__init__(fmt, datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_json(self, record) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info and record.exc_info != (None, None, None):
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'context'):
            log_data['context'] = record.context

        if hasattr(record, 'duration'):
            log_data['duration_seconds'] = record.duration

        return json.dumps(log_data, ensure_ascii=False, default=str)

    def _format_text(self, record) -> str:
        formatted = super().format(record)

        if hasattr(record, 'context') and self.include_context:
            context_str = ', '.join(f"{k}={v}" for k, v in record.context.items())
            formatted += f" | Context: {context_str}"

        if getattr(record, 'duration', None) is not None:
            formatted += f" | Duration: {record.duration:.3f}s"

        return formatted


class FemdownLogger:
    """Installs handlers on the root logger and hands out module loggers."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.loggers: Dict[str, logging.Logger] = {}
        self.console_handler: Optional[logging.Handler] = None
        self._setup_logging()

    @property
    def log_dir(self) -> Path:
        return self.config.cache_path / "logs"

    def _rotating_handler(self, filename: str, max_bytes: int, backup_count: int,
                          level: int, formatter: logging.Formatter) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    def _setup_logging(self):
        self.log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        root_logger.handlers.clear()

        self.console_handler = logging.StreamHandler(sys.stdout)
        self.console_handler.setLevel(logging.WARNING)
        self.console_handler.setFormatter(ContextualFormatter(include_context=False))
        root_logger.addHandler(self.console_handler)

        root_logger.addHandler(self._rotating_handler(
            "femdown.log", 10 * 1024 * 1024, 5, logging.DEBUG,
            ContextualFormatter(include_context=True)
        ))
        root_logger.addHandler(self._rotating_handler(
            "errors.log", 5 * 1024 * 1024, 3, logging.ERROR,
            ContextualFormatter(include_context=True)
        ))
        root_logger.addHandler(self._rotating_handler(
            "debug.jsonl", 20 * 1024 * 1024, 3, logging.DEBUG,
            ContextualFormatter(include_context=True, json_format=True)
        ))

        perf_logger = logging.getLogger(PERFORMANCE_LOGGER)
        perf_logger.handlers.clear()
        perf_logger.addHandler(self._rotating_handler(
            "performance.log", 5 * 1024 * 1024, 2, logging.DEBUG,
            ContextualFormatter(include_context=False)
        ))
        perf_logger.propagate = False

        # Third-party chatter
        logging.getLogger('aiohttp').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)
        logging.getLogger('playwright').setLevel(logging.WARNING)

    def get_logger(self, name: str) -> logging.Logger:
        if name not in self.loggers:
            self.loggers[name] = logging.getLogger(name)
        return self.loggers[name]

    def log_with_context(self, logger: logging.Logger, level: int, message: str,
                         context: Optional[Dict[str, Any]] = None, **kwargs):
        """Log a message with a structured context dict attached to the record."""
        if not logger.isEnabledFor(level):
            return

        record = logger.makeRecord(logger.name, level, "", 0, message, (), None)
        if context:
            record.context = context
        for key, value in kwargs.items():
            setattr(record, key, value)
        logger.handle(record)

    def log_api_request(self, logger: logging.Logger, method: str, url: str,
                        status_code: Optional[int] = None, duration: Optional[float] = None,
                        response_size: Optional[int] = None):
        """Log one API round trip; 4xx at WARNING, 5xx at ERROR."""
        context = {
            'api_method': method,
            'api_url': url,
            'status_code': status_code,
            'response_size_bytes': response_size
        }

        level = logging.DEBUG
        if status_code and status_code >= 400:
            level = logging.WARNING if status_code < 500 else logging.ERROR

        message = f"API {method} {url}"
        if status_code:
            message += f" -> {status_code}"

        self.log_with_context(logger, level, message, context, duration=duration)

    @contextmanager
    def performance_timer(self, operation_name: str, logger: Optional[logging.Logger] = None):
        """Time a block and log it (to the performance log unless a logger is given)."""
        if logger is None:
            logger = logging.getLogger(PERFORMANCE_LOGGER)

        with PerformanceTimer(operation_name, logger) as timer:
            yield timer

    def configure_debug_mode(self, enabled: bool = True):
        """Show DEBUG output on the console, or go back to warnings only."""
        if self.console_handler is not None:
            self.console_handler.setLevel(logging.DEBUG if enabled else logging.WARNING)


# Global logger instance
_logger_instance: Optional[FemdownLogger] = None


def setup_logging(config: AppConfig) -> FemdownLogger:
    """Set up global logging configuration."""
    global _logger_instance
    _logger_instance = FemdownLogger(config)
    return _logger_instance


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (plain ``logging.getLogger`` until setup_logging runs)."""
    if _logger_instance is None:
        return logging.getLogger(name)
    return _logger_instance.get_logger(name)


def log_with_context(logger: logging.Logger, level: int, message: str,
                     context: Optional[Dict[str, Any]] = None, **kwargs):
    """Log a message with additional context information."""
    if _logger_instance:
        _logger_instance.log_with_context(logger, level, message, context, **kwargs)
    else:
        logger.log(level, message)


def log_api_request(logger: logging.Logger, method: str, url: str, **kwargs):
    if _logger_instance:
        _logger_instance.log_api_request(logger, method, url, **kwargs)
    else:
        logger.debug(f"API {method} {url}")


@contextmanager
def performance_timer(operation_name: str, logger: Optional[logging.Logger] = None):
    """Context manager for measuring and logging operation performance."""
    if _logger_instance:
        with _logger_instance.performance_timer(operation_name, logger) as timer:
            yield timer
    else:
        with PerformanceTimer(operation_name, logger or logging.getLogger()) as timer:
            yield timer
