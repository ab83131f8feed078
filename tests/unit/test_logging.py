"""Tests for the logging configuration module."""

import json
import logging
from pathlib import Path

import pytest
import structlog

from error_resolver.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    add_context_processor,
    bind_context,
    clear_context,
    configure_logging,
    unbind_context,
)


@pytest.fixture(autouse=True)
def restore_logging():
    """Reset structlog and the root logger after each test."""
    yield
    structlog.reset_defaults()
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


class TestAddContextProcessor:
    """Tests for the add_context_processor processor."""

    def test_adds_service_and_version(self) -> None:
        """Test that every entry is tagged with the service."""
        from error_resolver._version import __version__

        result = add_context_processor(None, "info", {"event": "test"})  # type: ignore[arg-type]

        assert result["service"] == "error-resolver"
        assert result["version"] == __version__
        assert result["event"] == "test"


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_console_format(self) -> None:
        """Test configuration with console format."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.CONSOLE)
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_with_string_values(self) -> None:
        """Test configuration with lowercase string values."""
        configure_logging(level="warning", log_format="JSON")
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_level_rejected(self) -> None:
        """Test that unknown levels raise."""
        with pytest.raises(ValueError):
            configure_logging(level="LOUD")

    def test_json_goes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that JSON entries carry bound context and keep stdout clean."""
        configure_logging(level=LogLevel.INFO, log_format=LogFormat.JSON)
        bind_context(run_id="run-1", phase="Syntax Fixes")

        structlog.get_logger("error_resolver.test").info(LogEventNames.PHASE_STARTED, files=3)

        captured = capsys.readouterr()
        assert captured.out == ""
        entry = json.loads(captured.err.strip().splitlines()[-1])
        assert entry["event"] == "phase_started"
        assert entry["run_id"] == "run-1"
        assert entry["phase"] == "Syntax Fixes"
        assert entry["files"] == 3
        assert entry["service"] == "error-resolver"
        assert entry["level"] == "info"

    def test_level_filters_entries(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that entries below the level are dropped."""
        configure_logging(level=LogLevel.WARNING, log_format=LogFormat.JSON)

        structlog.get_logger("error_resolver.test").info("quiet")

        assert "quiet" not in capsys.readouterr().err

    def test_configure_with_file_logging(self, tmp_path: Path) -> None:
        """Test configuration with file logging."""
        log_file = tmp_path / "logs" / "resolver.log"
        configure_logging(
            level=LogLevel.INFO,
            log_format=LogFormat.JSON,
            file_path=log_file,
            file_enabled=True,
        )

        structlog.get_logger("error_resolver.test").info("to_file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "to_file" in log_file.read_text()

    def test_file_path_ignored_when_disabled(self, tmp_path: Path) -> None:
        """Test that file logging is opt-in."""
        log_file = tmp_path / "resolver.log"
        configure_logging(file_path=log_file, file_enabled=False)
        assert not log_file.exists()


class TestContextFunctions:
    """Tests for context binding functions."""

    def test_bind_and_clear_context(self) -> None:
        """Test binding and clearing context."""
        bind_context(run_id="run-1", phase="Import Fixes")
        assert structlog.contextvars.get_contextvars() == {
            "run_id": "run-1",
            "phase": "Import Fixes",
        }

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_unbind_context(self) -> None:
        """Test unbinding specific context keys."""
        bind_context(run_id="run-1", phase="Type Fixes")
        unbind_context("phase")
        assert structlog.contextvars.get_contextvars() == {"run_id": "run-1"}


class TestLogEnums:
    """Tests for LogLevel and LogFormat."""

    def test_log_levels(self) -> None:
        """Test that all expected log levels exist."""
        assert [level.value for level in LogLevel] == [
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ]

    def test_log_formats(self) -> None:
        """Test that all expected formats exist."""
        assert LogFormat.JSON == "json"
        assert LogFormat.CONSOLE == "console"
