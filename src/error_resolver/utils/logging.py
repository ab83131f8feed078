"""Structured logging configuration.

This module provides logging configuration for error-resolver:
- Configurable log levels and output formats (JSON/console)
- Context injection (run id, phase) for correlation
- File and console output support
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add contextual information to all log entries.

    Adds standard fields for correlation and debugging:
    - service: Always "error-resolver"
    - version: Current application version (if available)

    Args:
        logger: Logger instance (unused)
        method_name: Log method name (unused)
        event_dict: Event dictionary to process

    Returns:
        Event dictionary with added context
    """
    event_dict["service"] = "error-resolver"

    try:
        from error_resolver._version import __version__

        event_dict["version"] = __version__
    except ImportError:
        pass

    return event_dict


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.CONSOLE,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging for the application.

    Logs always go to stderr so that JSON reports on stdout stay clean.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging

    Example:
        # Interactive use
        configure_logging(level="DEBUG", log_format="console")

        # CI pipelines
        configure_logging(level="INFO", log_format="json")
    """
    if isinstance(level, str):
        level = LogLevel(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    numeric_level = getattr(logging, level.value)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON:
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(), exception_formatter=structlog.dev.plain_traceback
            )
        )

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    handlers.append(console_handler)

    if file_enabled and file_path:
        try:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(file_path)
            file_handler.setLevel(numeric_level)
            handlers.append(file_handler)
        except OSError as e:
            # Continue with console only
            console_logger = logging.getLogger("error_resolver.logging")
            console_logger.warning(f"Could not create log file {file_path}: {e}")

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables for all subsequent log calls.

    These values will be included in all log entries until cleared.

    Args:
        **kwargs: Key-value pairs to bind

    Example:
        bind_context(run_id="20260101-120000-ab12cd", phase="Syntax Fixes")
        log.info("phase_started")  # Includes run_id and phase
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove contextual variables.

    Args:
        *keys: Keys to unbind
    """
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound contextual variables."""
    structlog.contextvars.clear_contextvars()


class LogEventNames:
    """Standard log event names for consistency.

    Use these constants to ensure consistent event naming across
    the codebase, making log aggregation and alerting easier.
    """

    # Run lifecycle
    RUN_STARTING = "run_starting"
    RUN_FINISHED = "run_finished"
    RUN_STATE_CHANGED = "run_state_changed"
    RUN_LOCK_ACQUIRED = "run_lock_acquired"
    RUN_LOCK_RELEASED = "run_lock_released"
    RUN_LOCK_BUSY = "run_lock_busy"

    # Diagnostic analysis
    DIAGNOSTICS_ANALYZED = "diagnostics_analyzed"
    DIAGNOSTIC_LINE_SKIPPED = "diagnostic_line_skipped"
    DIAGNOSTICS_COLLECTED = "diagnostics_collected"

    # Planning
    PLAN_CREATED = "plan_created"

    # Phase execution
    PHASE_STARTED = "phase_started"
    PHASE_SUCCEEDED = "phase_succeeded"
    PHASE_FAILED = "phase_failed"
    PHASE_SKIPPED = "phase_skipped"
    PHASE_TIMEOUT = "phase_timeout"
    FIXER_ATTEMPT = "fixer_attempt"
    FIXER_ERROR = "fixer_error"
    FIXER_NOT_FOUND = "fixer_not_found"

    # Backups
    SNAPSHOT_CREATED = "snapshot_created"
    SNAPSHOT_REUSED = "snapshot_reused"
    SNAPSHOT_FAILED = "snapshot_failed"
    BACKUPS_DISABLED = "backups_disabled"
    ROLLBACK_STARTED = "rollback_started"
    ROLLBACK_COMPLETE = "rollback_complete"
    ROLLBACK_FAILED = "rollback_failed"

    # Validation
    VALIDATION_START = "validation_start"
    VALIDATION_COMPLETE = "validation_complete"
    VALIDATION_CHECK_PASSED = "validation_check_passed"
    VALIDATION_CHECK_FAILED = "validation_check_failed"
    VALIDATION_CHECK_SKIPPED = "validation_check_skipped"
