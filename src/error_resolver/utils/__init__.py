"""Utility functions and helpers.

This module provides various utilities for error-resolver:
- async_helpers: Exceptions, bounded retries, deadlines, cancellation
- safe_subprocess: Safe external command execution
- logging: Structured logging with run context
- metrics: Remediation metrics collection
"""

from error_resolver.utils.async_helpers import (
    BackupError,
    CancellationToken,
    ConfigError,
    FixerError,
    FixerNotFoundError,
    InvalidTransitionError,
    OperationTimeoutError,
    PhaseTimeoutError,
    ResolverError,
    RollbackError,
    RunLockedError,
    ValidationCheckError,
    create_retry,
    with_timeout,
)
from error_resolver.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    unbind_context,
)
from error_resolver.utils.metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)
from error_resolver.utils.safe_subprocess import (
    CommandError,
    CommandNotFoundError,
    CommandResult,
    CommandTimeoutError,
    run_command,
)

__all__ = [
    # Exceptions
    "BackupError",
    "ConfigError",
    "FixerError",
    "FixerNotFoundError",
    "InvalidTransitionError",
    "OperationTimeoutError",
    "PhaseTimeoutError",
    "ResolverError",
    "RollbackError",
    "RunLockedError",
    "ValidationCheckError",
    # Async helpers
    "CancellationToken",
    "create_retry",
    "with_timeout",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "bind_context",
    "clear_context",
    "configure_logging",
    "unbind_context",
    # Metrics
    "Counter",
    "Histogram",
    "MetricsRegistry",
    "Timer",
    "get_metrics",
    # Subprocess
    "CommandError",
    "CommandNotFoundError",
    "CommandResult",
    "CommandTimeoutError",
    "run_command",
]
