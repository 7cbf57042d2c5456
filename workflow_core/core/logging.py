"""Logging configuration and logger collaborators for the workflow engine."""

import logging
import sys
import json
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Optional, Dict, Any
from pathlib import Path


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging with JSON output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, default=str)


class WorkflowContextFilter(logging.Filter):
    """Filter to add workflow context (workflow id, execution id) to log records.

    Fields come from the active ``logging_context`` block of the current
    thread or task, so concurrent executions never see each other's ids.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context fields to log record."""
        context = _log_context.get()
        if context:
            record.extra_fields = {**context, **getattr(record, 'extra_fields', {})}
        return True


_log_context: ContextVar[Dict[str, Any]] = ContextVar("workflow_log_context", default={})
_context_filter = WorkflowContextFilter()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure logging for the workflow engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        log_format: Custom log format string
        structured: Whether to use structured JSON logging
        max_size: Maximum log file size in bytes before rotation
        backup_count: Number of backup files to keep

    Returns:
        Root logger instance
    """
    if structured:
        formatter = StructuredFormatter()
    else:
        if log_format is None:
            log_format = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(funcName)s:%(lineno)d] - %(message)s"

        formatter = logging.Formatter(
            fmt=log_format,
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_size,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger("workflow_core").setLevel(logging.DEBUG if level.upper() == "DEBUG" else logging.INFO)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)


@contextmanager
def logging_context(**fields):
    """Attach fields to every log record emitted inside the block."""
    token = _log_context.set({**_log_context.get(), **fields})
    try:
        yield
    finally:
        _log_context.reset(token)


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log a message with additional context fields."""
    extra = {"extra_fields": context}
    logger.log(level, message, extra=extra)


class StandardLoggerAdapter:
    """Logger collaborator (``debug/info/warn/error(message, metadata)``) backed by ``logging``.

    Metadata travels as ``extra_fields`` so the structured formatter emits it
    alongside the message.
    """

    def __init__(self, name: str = "workflow_core"):
        self.logger = get_logger(name)

    def debug(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        log_with_context(self.logger, logging.DEBUG, message, **(metadata or {}))

    def info(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        log_with_context(self.logger, logging.INFO, message, **(metadata or {}))

    def warn(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        log_with_context(self.logger, logging.WARNING, message, **(metadata or {}))

    warning = warn

    def error(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        log_with_context(self.logger, logging.ERROR, message, **(metadata or {}))


class RetryLogger:
    """Specialized logger for retry attempts made by the engine."""

    def __init__(self, component_name: str):
        self.logger = get_logger(f"workflow_core.retry.{component_name}")
        self.component_name = component_name

    def log_retry_attempt(self, operation: str, reason: Optional[str], attempt: int, max_attempts: int, delay: float):
        """Log a retry attempt before waiting out its backoff."""
        log_with_context(
            self.logger, logging.WARNING,
            f"Retry attempt {attempt}/{max_attempts} for {operation} in {delay:.2f}s",
            component=self.component_name,
            operation=operation,
            error_message=reason,
            attempt=attempt,
            max_attempts=max_attempts,
            delay=delay
        )

    def log_retry_success(self, operation: str, attempts_used: int):
        """Log success after at least one retry."""
        log_with_context(
            self.logger, logging.INFO,
            f"{operation} succeeded after {attempts_used} retries",
            component=self.component_name,
            operation=operation,
            attempts_used=attempts_used,
            retry_status="success"
        )

    def log_retry_exhausted(self, operation: str, reason: Optional[str], attempts_used: int):
        """Log that all retries were used without success."""
        log_with_context(
            self.logger, logging.ERROR,
            f"{operation} still failing after {attempts_used} retries",
            component=self.component_name,
            operation=operation,
            error_message=reason,
            attempts_used=attempts_used,
            retry_status="exhausted"
        )
