"""Structured logging configuration for the BoardFlow automation service.

This module provides:
- JSON structured logging for production environments
- Colored console output for development
- Rotating file handler (10MB max, 5 backups)
- Sensitive data filtering on both messages and structured context

Engine modules log through ``get_logger(__name__)`` and attach structured
fields with ``extra={"context": {...}}``; ``LogContext`` scopes shared fields
(for example an ``execution_id``) over a block of code.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, ClassVar

from boardflow.core.config import settings


class LogLevel(str, Enum):
    """Log level enumeration for type-safe log level configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class SensitiveDataFilter(logging.Filter):
    """Filter to prevent sensitive data from appearing in logs.

    Redacts ``key: value`` / ``key=value`` fragments in the message and masks
    values under secret-looking keys in the structured ``context`` attribute.

    Examples:
        >>> logger = logging.getLogger("boardflow")
        >>> logger.addFilter(SensitiveDataFilter())
        >>> logger.info("Webhook token=abc123")
        # Logs: "Webhook token: [REDACTED]"
    """

    SENSITIVE_PATTERNS: ClassVar[list[str]] = [
        "password",
        "passwd",
        "pwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "bearer",
        "session",
        "credential",
        "auth",
    ]

    def __init__(self) -> None:
        """Initialize sensitive data filter."""
        super().__init__()
        self._regexes = [
            (pattern, re.compile(rf"{pattern}[:=]\s*[\"']?[^\s\"']+", re.IGNORECASE))
            for pattern in self.SENSITIVE_PATTERNS
        ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data from the record; never drops it."""
        record.msg = self._redact_text(str(record.msg))

        if record.args:
            record.args = tuple(
                self._redact_text(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = self._redact_context(context)

        return True

    def _redact_text(self, text: str) -> str:
        for pattern, regex in self._regexes:
            text = regex.sub(f"{pattern}: [REDACTED]", text)
        return text

    def _redact_context(self, context: dict[str, Any]) -> dict[str, Any]:
        redacted: dict[str, Any] = {}
        for key, value in context.items():
            lowered = str(key).lower()
            if any(pattern in lowered for pattern in self.SENSITIVE_PATTERNS):
                redacted[key] = "[REDACTED]"
            elif isinstance(value, dict):
                redacted[key] = self._redact_context(value)
            else:
                redacted[key] = value
        return redacted


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Format:
        {
            "timestamp": "2025-01-12T10:30:45.123Z",
            "level": "INFO",
            "logger": "boardflow.services.automation.executor",
            "message": "Automation execution finished",
            "service": "BoardFlow Automation API",
            "version": "0.1.0",
            "context": {"automation_id": "...", "success": true}
        }
    """

    def __init__(
        self,
        service_name: str = "BoardFlowAutomationAPI",
        service_version: str = "0.1.0",
    ) -> None:
        super().__init__()
        self.service_name = service_name
        self.service_version = service_version

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.service_version,
        }

        if hasattr(record, "context"):
            log_entry["context"] = record.context

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        # Source location only for ERROR and above
        if record.levelno >= logging.ERROR:
            log_entry["source"] = {
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
                "process": record.process,
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored, human-readable console formatter for development."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors and inline context."""
        log_color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{log_color}{record.levelname}{self.RESET}"

        if getattr(record, "context", None):
            record.msg = (
                f"{record.msg} | Context: {json.dumps(record.context, default=str)}"
            )

        return super().format(record)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    service_name: str = "BoardFlowAutomationAPI",
    enable_json: bool = True,
    enable_console: bool = True,
    enable_sensitive_filter: bool | None = None,
) -> logging.Logger:
    """Configure application logging with structured handlers.

    Args:
        log_level: Logging level name. Defaults to ``settings.LOG_LEVEL``.
        log_file: Path to log file. Defaults to ``logs/app.log``.
        service_name: Name of the service for log metadata.
        enable_json: Enable JSON formatting for the file handler.
        enable_console: Enable the console output handler.
        enable_sensitive_filter: Attach ``SensitiveDataFilter`` to every
            handler. Defaults to ``settings.LOG_SENSITIVE_FILTER``.

    Returns:
        Configured root logger instance.
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL
    if enable_sensitive_filter is None:
        enable_sensitive_filter = settings.LOG_SENSITIVE_FILTER

    log_file_path = Path(log_file) if log_file else Path("logs") / "app.log"
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    sensitive_filter = SensitiveDataFilter() if enable_sensitive_filter else None

    file_handler = RotatingFileHandler(
        filename=str(log_file_path),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    if enable_json:
        file_handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        file_handler.setFormatter(
            logging.Formatter(settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )
    handlers: list[logging.Handler] = [file_handler]

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        if settings.DEBUG:
            console_handler.setFormatter(ColoredConsoleFormatter())
        else:
            console_handler.setFormatter(JSONFormatter(service_name=service_name))
        handlers.append(console_handler)

    for handler in handlers:
        if sensitive_filter is not None:
            handler.addFilter(sensitive_filter)
        logger.addHandler(handler)

    logger.info(
        f"Logging initialized - Level: {log_level}, File: {log_file_path}",
        extra={
            "context": {
                "log_level": log_level,
                "log_file": str(log_file_path),
                "service": service_name,
            }
        },
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name.

    Examples:
        >>> from boardflow.core.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Processing event")
    """
    return logging.getLogger(name)


class LogContext(logging.Filter):
    """Add structured context to records emitted by a logger inside a block.

    The context is merged in as a filter, so explicit
    ``extra={"context": ...}`` fields on individual calls still win.

    Examples:
        >>> logger = get_logger(__name__)
        >>> with LogContext(logger, automation_id="123", action="execute"):
        ...     logger.info("Walking graph")
    """

    def __init__(self, logger: logging.Logger, **context: Any) -> None:
        super().__init__()
        self.logger = logger
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = {**self.context, **getattr(record, "context", {})}
        return True

    def __enter__(self) -> LogContext:
        self.logger.addFilter(self)
        return self

    def __exit__(self, *args: Any) -> None:
        self.logger.removeFilter(self)


__all__ = [
    "ColoredConsoleFormatter",
    "JSONFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataFilter",
    "get_logger",
    "setup_logging",
]
