"""Safe subprocess wrapper for project tooling (type checker, linter, build).

This module provides a wrapper around external commands that:
- Never uses shell=True
- Validates the argument list before execution
- Enforces timeouts on all operations
- Reports a missing executable as a specific error
"""

from __future__ import annotations

import asyncio
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from error_resolver.utils.async_helpers import ResolverError

log = structlog.get_logger()

# Default timeout for commands (seconds)
DEFAULT_TIMEOUT = 60.0


class CommandError(ResolverError):
    """Base exception for external command errors."""


class CommandNotFoundError(CommandError):
    """Raised when the executable can't be found."""


class CommandTimeoutError(CommandError):
    """Raised when a command times out."""


@dataclass
class CommandResult:
    """Result of an external command execution."""

    stdout: str
    stderr: str
    return_code: int
    command: list[str]
    duration: float = 0.0

    @property
    def success(self) -> bool:
        """Return True if the command succeeded."""
        return self.return_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr. Some tools print diagnostics to either."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


def _validate_args(args: Sequence[str]) -> list[str]:
    if isinstance(args, str):
        raise CommandError("Command must be an argument list, not a shell string")
    cmd = [str(arg) for arg in args]
    if not cmd or not cmd[0].strip():
        raise CommandError("Command must not be empty")
    if any("\x00" in arg for arg in cmd):
        raise CommandError("Command arguments must not contain NUL bytes")
    return cmd


async def run_command(
    args: Sequence[str],
    cwd: Path | str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    env: Mapping[str, str] | None = None,
    check: bool = False,
) -> CommandResult:
    """Run an external command safely.

    Args:
        args: Command and arguments.
        cwd: Working directory for the command.
        timeout: Timeout in seconds.
        env: Full environment for the child. None inherits the parent's.
        check: If True, raise CommandError on a non-zero exit.

    Returns:
        CommandResult with stdout, stderr, and return code.

    Raises:
        CommandNotFoundError: If the executable doesn't exist.
        CommandTimeoutError: If the command times out.
        CommandError: If check=True and the command fails.
    """
    cmd = _validate_args(args)
    if shutil.which(cmd[0]) is None and not Path(cmd[0]).is_file():
        log.warning("command_not_found", executable=cmd[0])
        raise CommandNotFoundError(f"Executable not found: {cmd[0]}")

    log.debug("executing_command", command=cmd, cwd=str(cwd) if cwd else None, timeout=timeout)

    def run_sync() -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            cmd,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            shell=False,  # Never use shell=True
        )

    started = time.monotonic()
    try:
        proc = await asyncio.wait_for(
            asyncio.to_thread(run_sync),
            timeout=timeout + 5,  # Extra buffer for thread overhead
        )
    except (subprocess.TimeoutExpired, TimeoutError) as e:
        msg = f"Command timed out after {timeout}s: {cmd}"
        log.error("command_timeout", command=cmd, timeout=timeout)
        raise CommandTimeoutError(msg) from e
    except FileNotFoundError as e:
        log.warning("command_not_found", executable=cmd[0])
        raise CommandNotFoundError(f"Executable not found: {cmd[0]}") from e

    result = CommandResult(
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        return_code=proc.returncode,
        command=cmd,
        duration=time.monotonic() - started,
    )

    log.debug(
        "command_finished",
        command=cmd,
        return_code=result.return_code,
        duration=round(result.duration, 3),
    )

    if check and not result.success:
        raise CommandError(
            f"Command failed with exit code {result.return_code}: {result.stderr or result.stdout}"
        )

    return result
