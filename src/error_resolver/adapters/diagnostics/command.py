"""Diagnostic source that runs the type checker."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog

from error_resolver.config.schema import DiagnosticsConfig
from error_resolver.utils.logging import LogEventNames
from error_resolver.utils.safe_subprocess import run_command

log = structlog.get_logger()


class CommandDiagnosticSource:
    """Collect diagnostics by running a command in the project root.

    The type checker exits non-zero whenever it reports errors, so the
    exit code is not treated as a failure.
    """

    def __init__(self, command: Sequence[str], cwd: Path, timeout: float = 120.0) -> None:
        self._command = list(command)
        self._cwd = cwd
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: DiagnosticsConfig, project_root: Path) -> CommandDiagnosticSource:
        return cls(config.command, cwd=project_root, timeout=config.timeout)

    async def collect(self) -> str:
        """Run the command and return its combined output.

        Raises:
            CommandNotFoundError: If the executable doesn't exist
            CommandTimeoutError: If the command times out
        """
        result = await run_command(self._command, cwd=self._cwd, timeout=self._timeout)
        log.info(
            LogEventNames.DIAGNOSTICS_COLLECTED,
            command=self._command,
            return_code=result.return_code,
            duration=round(result.duration, 3),
        )
        return result.output
