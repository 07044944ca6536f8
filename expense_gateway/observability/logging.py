# ==== STRUCTURED LOGGING WITH LOGURU ==== #

"""
Structured logging with loguru for the expense gateway.

This module provides JSON structured logging, optional file rotation,
interception of standard library logging, OpenTelemetry trace correlation and
redaction of credentials before request metadata reaches a log sink.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Mapping

from loguru import logger
from opentelemetry import trace


REDACTED = "[REDACTED]"

# Header names whose values never reach a log sink
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-api-key"})


class InterceptHandler(logging.Handler):
    """Route standard library log records through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def init_logging(level: str = "INFO", log_to_files: bool = False) -> None:
    """Initialize structured logging with loguru.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_files: Also write rotated JSON files under ``logs/``
    """
    # Remove default loguru handler
    logger.remove()

    # Console handler with JSON formatting
    logger.add(
        sys.stderr,
        format="{message}",
        serialize=True,
        level=level.upper(),
        enqueue=True,
        colorize=False,
        backtrace=True,
        diagnose=False,
    )

    if log_to_files:
        logs_dir = Path("logs")
        logs_dir.mkdir(exist_ok=True)

        logger.add(
            logs_dir / "expense_gateway_{time:YYYY-MM-DD}.log",
            rotation="50 MB",
            retention="14 days",
            compression="gz",
            serialize=True,
            level="DEBUG",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )

    # Replace standard logging handlers
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.info("Structured logging initialized", level=level)


class ContextualLogger:
    """Logger using loguru with automatic context injection.

    Every call accepts keyword context which is bound onto the record, together
    with the active OpenTelemetry trace and span ids when a span is recording.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logger.bind(logger_name=name)

    def _add_context(self, extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
        context = {"logger_name": self.name}

        if extra:
            context.update(extra)

        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            if span_context.is_valid:
                context['trace_id'] = format(span_context.trace_id, '032x')
                context['span_id'] = format(span_context.span_id, '016x')

        return context

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log debug message with context."""
        self.logger.bind(**self._add_context(kwargs)).debug(msg)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log info message with context."""
        self.logger.bind(**self._add_context(kwargs)).info(msg)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log warning message with context."""
        self.logger.bind(**self._add_context(kwargs)).warning(msg)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log error message with context."""
        self.logger.bind(**self._add_context(kwargs)).error(msg)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log exception with full traceback and context."""
        self.logger.bind(**self._add_context(kwargs)).exception(msg)


def get_logger(name: str) -> ContextualLogger:
    """Get a contextual logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextualLogger instance
    """
    return ContextualLogger(name)


def redact_headers(headers: Mapping[str, str] | None) -> Dict[str, str]:
    """Return a copy of ``headers`` safe to log."""
    if not headers:
        return {}
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """Log timing of an operation, escalating the level for slow ones.

    Args:
        operation: Name of the operation
        duration: Duration in seconds
        **context: Additional context fields
    """
    perf_logger = logger.bind(
        operation=operation,
        duration_seconds=round(duration, 3),
        performance_log=True,
        **context
    )

    if duration > 10.0:
        perf_logger.warning(f"Slow operation detected: {operation}")
    elif duration > 5.0:
        perf_logger.info(f"Operation completed: {operation}")
    else:
        perf_logger.debug(f"Operation completed: {operation}")
