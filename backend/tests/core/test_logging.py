"""Tests for the logging module.

This module tests the logging system including:
- Structured JSON logging
- Sensitive data filtering in messages and structured context
- Scoped context through LogContext
- Settings integration
"""

import json
import logging
from pathlib import Path

from boardflow.core.config import Settings
from boardflow.core.logging import (
    JSONFormatter,
    LogContext,
    SensitiveDataFilter,
    setup_logging,
)


def make_record(msg: str = "Test message", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestSensitiveDataFilter:
    """Test sensitive data filtering in logs."""

    def test_filter_password_in_message(self) -> None:
        """Test that passwords are redacted from log messages."""
        record = make_record("User password: secret123")

        result = SensitiveDataFilter().filter(record)

        assert result is True
        assert "[REDACTED]" in record.msg
        assert "secret123" not in record.msg

    def test_filter_multiple_sensitive_patterns(self) -> None:
        """Test that multiple sensitive patterns are redacted."""
        record = make_record("password: pass123, token=abc123, secret: xyz789")

        SensitiveDataFilter().filter(record)

        assert record.msg.count("[REDACTED]") >= 3
        assert "abc123" not in record.msg

    def test_filter_string_args(self) -> None:
        """Test that %-style arguments are redacted too."""
        record = make_record("Calling webhook with %s")
        record.args = ("token=abc123",)

        SensitiveDataFilter().filter(record)

        assert "abc123" not in record.getMessage()

    def test_filter_structured_context(self) -> None:
        """Test that secret-looking context keys are masked, nested ones included."""
        record = make_record()
        record.context = {
            "automation_id": "a-1",
            "api_key": "k-123",
            "handler": {"auth_header": "Bearer abc", "channel": "#ops"},
        }

        SensitiveDataFilter().filter(record)

        assert record.context == {
            "automation_id": "a-1",
            "api_key": "[REDACTED]",
            "handler": {"auth_header": "[REDACTED]", "channel": "#ops"},
        }

    def test_plain_message_untouched(self) -> None:
        """Test that messages without secrets pass unchanged."""
        record = make_record("Automation executed (success, 3 steps)")

        SensitiveDataFilter().filter(record)

        assert record.msg == "Automation executed (success, 3 steps)"


class TestJSONFormatter:
    """Test JSON log formatting."""

    def test_json_formatter_creates_valid_json(self) -> None:
        """Test that JSON formatter creates valid JSON output."""
        formatter = JSONFormatter(service_name="TestAPI")

        log_entry = json.loads(formatter.format(make_record()))

        assert log_entry["level"] == "INFO"
        assert log_entry["logger"] == "test.logger"
        assert log_entry["message"] == "Test message"
        assert log_entry["service"] == "TestAPI"
        assert log_entry["timestamp"].endswith("Z")
        assert "source" not in log_entry

    def test_json_formatter_includes_context(self) -> None:
        """Test that JSON formatter includes context."""
        record = make_record()
        record.context = {"execution_id": "e-1", "success": True}

        log_entry = json.loads(JSONFormatter().format(record))

        assert log_entry["context"] == {"execution_id": "e-1", "success": True}

    def test_errors_include_source(self) -> None:
        """Test that ERROR records carry their source location."""
        log_entry = json.loads(JSONFormatter().format(make_record(level=logging.ERROR)))

        assert log_entry["source"]["line"] == 42
        assert log_entry["source"]["file"] == "test.py"


class TestLogContext:
    """Test LogContext context manager."""

    def _capture(self, name: str) -> tuple[logging.Logger, list[logging.LogRecord]]:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        handler = logging.StreamHandler()
        records: list[logging.LogRecord] = []
        handler.emit = records.append  # type: ignore[method-assign]
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        return logger, records

    def test_log_context_adds_context_to_records(self) -> None:
        """Test that LogContext adds context to log records."""
        logger, records = self._capture("test_context")

        with LogContext(logger, automation_id="123", simulate=True):
            logger.info("Walking graph")

        assert len(records) == 1
        assert records[0].context == {"automation_id": "123", "simulate": True}

    def test_explicit_context_wins(self) -> None:
        """Test per-call context is merged over the scoped context."""
        logger, records = self._capture("test_context_merge")

        with LogContext(logger, automation_id="123", step="outer"):
            logger.info("Step", extra={"context": {"step": "inner"}})

        assert records[0].context == {"automation_id": "123", "step": "inner"}

    def test_context_removed_on_exit(self) -> None:
        """Test that records after the block carry no scoped context."""
        logger, records = self._capture("test_context_exit")

        with LogContext(logger, automation_id="123"):
            pass
        logger.info("After")

        assert not hasattr(records[0], "context")


class TestSetupLogging:
    """Test logging setup function."""

    def test_setup_logging_creates_log_directory(self, tmp_path: Path) -> None:
        """Test that setup_logging creates log directory if it doesn't exist."""
        log_file = tmp_path / "logs" / "test.log"

        setup_logging(log_file=str(log_file), enable_console=False)

        assert log_file.parent.exists()

    def test_setup_logging_configures_log_level(self, tmp_path: Path) -> None:
        """Test that setup_logging configures log level correctly."""
        logger = setup_logging(
            log_level="DEBUG", log_file=str(tmp_path / "test.log"), enable_console=False
        )

        assert logger.level == logging.DEBUG

    def test_file_handler_writes_json(self, tmp_path: Path) -> None:
        """Test that the file handler writes JSON lines with secrets redacted."""
        log_file = tmp_path / "test.log"
        logger = setup_logging(log_file=str(log_file), enable_console=False)

        logging.getLogger("boardflow.test").warning("Rejected token=abc123")
        for handler in logger.handlers:
            handler.flush()

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert lines[-1]["message"] == "Rejected token: [REDACTED]"
        assert lines[-1]["level"] == "WARNING"

    def test_sensitive_filter_can_be_disabled(self, tmp_path: Path) -> None:
        """Test that no handler carries the filter when disabled."""
        logger = setup_logging(
            log_file=str(tmp_path / "test.log"),
            enable_console=False,
            enable_sensitive_filter=False,
        )

        assert all(
            not any(isinstance(f, SensitiveDataFilter) for f in handler.filters)
            for handler in logger.handlers
        )


class TestConfigIntegration:
    """Test logging and engine configuration through settings."""

    def test_log_level_from_settings(self) -> None:
        """Test that log level can be configured via settings."""
        settings = Settings(LOG_LEVEL="DEBUG")
        assert settings.LOG_LEVEL == "DEBUG"

    def test_sensitive_filter_from_settings(self) -> None:
        """Test that sensitive data filter can be configured via settings."""
        settings = Settings(LOG_SENSITIVE_FILTER=False)
        assert settings.LOG_SENSITIVE_FILTER is False

    def test_engine_defaults(self) -> None:
        """Test the automation engine limits have their defaults."""
        settings = Settings()
        assert settings.AUTOMATION_MAX_CHAIN_DEPTH == 5
        assert settings.AUTOMATION_MAX_PARALLEL_NODES == 10
        assert "webhook_url" in settings.AUTOMATION_REDACTED_KEYS

    def test_comma_separated_lists(self) -> None:
        """Test list settings accept comma-separated strings."""
        settings = Settings(
            AUTOMATION_REDACTED_KEYS="token, signing_key",
            AUTOMATION_ACTION_HANDLERS="acme.handlers:SlackHandler",
        )
        assert settings.AUTOMATION_REDACTED_KEYS == ["token", "signing_key"]
        assert settings.AUTOMATION_ACTION_HANDLERS == ["acme.handlers:SlackHandler"]
