"""Async utilities for bounded, cancellable remediation work.

This module provides:
- The exception hierarchy shared by every component
- Retry helpers with bounded attempts and optional exponential backoff
- Deadline racing that abandons (never awaits) overdue tasks
- A cancellation token that carries a deadline
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_none,
)

log = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class ResolverError(Exception):
    """Base exception for all error-resolver errors."""


class ConfigError(ResolverError):
    """Configuration is invalid or references something that can't be loaded."""


class BackupError(ResolverError):
    """A file snapshot could not be taken."""


class RollbackError(ResolverError):
    """A snapshot could not be restored, or the restored content didn't verify.

    Attributes:
        paths: Files whose state is unknown after the failed restore.
    """

    def __init__(self, message: str, paths: list[str] | None = None) -> None:
        super().__init__(message)
        self.paths = paths or []


class OperationTimeoutError(ResolverError):
    """An awaited operation missed its deadline.

    Attributes:
        timeout: The deadline that was exceeded, in seconds.
    """

    def __init__(self, message: str, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout


class PhaseTimeoutError(OperationTimeoutError):
    """A fixer did not finish a phase attempt before the phase deadline."""


class FixerError(ResolverError):
    """A fixer raised or reported failure."""


class FixerNotFoundError(ResolverError):
    """No fixer is registered for a root cause."""


class ValidationCheckError(ResolverError):
    """A validation probe failed. Recorded as a result, never retried."""


class RunLockedError(ResolverError):
    """Another run holds the project lock."""


class InvalidTransitionError(ResolverError):
    """An illegal run state change was attempted."""

    def __init__(self, source: str, target: str) -> None:
        super().__init__(f"Illegal run state transition: {source} -> {target}")
        self.source = source
        self.target = target


# =============================================================================
# Retry Helpers
# =============================================================================


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


RETRYABLE_ERRORS: tuple[type[Exception], ...] = (PhaseTimeoutError, FixerError)


def create_retry(
    max_attempts: int,
    backoff: float = 0.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] = RETRYABLE_ERRORS,
) -> AsyncRetrying:
    """Create a bounded async retry controller.

    Use it as ``async for attempt in create_retry(...)`` with
    ``with attempt:`` around the work. Attempts run strictly in sequence.

    Args:
        max_attempts: Total number of attempts, including the first.
        backoff: Base of the exponential wait between attempts (seconds).
            0 disables waiting.
        max_wait: Upper bound on any single wait (seconds).
        retry_on: Tuple of exception types to retry on.

    Returns:
        An AsyncRetrying instance that re-raises the last error.

    Raises:
        ValueError: If max_attempts is less than 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    wait = wait_exponential(multiplier=backoff, max=max_wait) if backoff > 0 else wait_none()
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait,
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )


# =============================================================================
# Timeout Utilities
# =============================================================================


def _discard_abandoned(task: asyncio.Future[Any]) -> None:
    """Retrieve the outcome of an abandoned task so it is never reported as lost."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.debug(
            "abandoned_task_failed",
            exception_type=type(exc).__name__,
            exception_message=str(exc),
        )


async def with_timeout(
    aw: Awaitable[T],
    timeout: float,
    error_message: str | None = None,
    token: CancellationToken | None = None,
) -> T:
    """Race an awaitable against a deadline.

    Unlike ``asyncio.wait_for``, an overdue task is cancelled and then
    abandoned: the caller does not wait for it to acknowledge the
    cancellation. A work routine that ignores cancellation can't extend
    the deadline.

    Args:
        aw: The awaitable to execute.
        timeout: Timeout in seconds.
        error_message: Custom error message for timeout.
        token: Cancellation token signalled at the deadline.

    Returns:
        The result of the awaitable.

    Raises:
        OperationTimeoutError: If the deadline passes first.
    """
    task = asyncio.ensure_future(aw)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task not in done:
        if token is not None:
            token.cancel()
        task.cancel()
        task.add_done_callback(_discard_abandoned)
        msg = error_message or f"Operation timed out after {timeout}s"
        log.warning("operation_timeout", timeout=timeout)
        raise OperationTimeoutError(msg, timeout)

    return task.result()


# =============================================================================
# Cancellation Utilities
# =============================================================================


class CancellationToken:
    """Token for cooperative cancellation of async operations.

    A token may carry a deadline. Once the deadline passes the token
    reports itself as cancelled even if nobody called ``cancel()``.

    Example:
        token = CancellationToken.with_timeout(30.0)

        async def fixer(files, errors, token: CancellationToken):
            for path in files:
                token.raise_if_cancelled()
                await rewrite(path)
    """

    def __init__(self, deadline: float | None = None) -> None:
        """Initialize the token.

        Args:
            deadline: Absolute ``time.monotonic()`` value after which the
                token counts as cancelled. None means no deadline.
        """
        self._cancelled = False
        self._event = asyncio.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, timeout: float) -> CancellationToken:
        """Create a token whose deadline is ``timeout`` seconds from now."""
        return cls(deadline=time.monotonic() + timeout)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested or the deadline passed."""
        if not self._cancelled and self._deadline is not None:
            if time.monotonic() >= self._deadline:
                self.cancel()
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation."""
        self._cancelled = True
        self._event.set()

    async def wait(self) -> None:
        """Wait until cancellation is requested or the deadline passes."""
        remaining = self.remaining
        if remaining is None:
            await self._event.wait()
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=remaining)
        except TimeoutError:
            self.cancel()

    def raise_if_cancelled(self) -> None:
        """Raise asyncio.CancelledError if cancelled.

        Use this to create cancellation points in long-running operations.
        """
        if self.is_cancelled:
            raise asyncio.CancelledError("Operation was cancelled")
