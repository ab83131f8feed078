"""Validation probes backed by external commands (tsc, eslint, npm)."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from error_resolver.config.schema import ValidationConfig
from error_resolver.core.analyzer import DiagnosticAnalyzer
from error_resolver.models.validation import CheckKind, ProbeResult, ValidationCheck
from error_resolver.utils.async_helpers import ValidationCheckError
from error_resolver.utils.safe_subprocess import CommandError, CommandResult, run_command

log = structlog.get_logger()

# Keep reports readable
MAX_OUTPUT_CHARS = 1000
SAMPLE_ERRORS = 3
TOP_CODES = 5

PROBLEMS_PATTERN = re.compile(r"(\d+) problems?")
ERRORS_PATTERN = re.compile(r"(\d+) errors?")
WARNINGS_PATTERN = re.compile(r"(\d+) warnings?")


def _extract_number(text: str, pattern: re.Pattern[str]) -> int:
    match = pattern.search(text)
    return int(match.group(1)) if match else 0


def _tail(text: str) -> str:
    return text[-MAX_OUTPUT_CHARS:]


def analyze_compile_output(name: str, result: CommandResult) -> ProbeResult:
    """Count diagnostics in compiler output and report the most frequent codes."""
    errors = DiagnosticAnalyzer().parse(result.output)
    if result.success and not errors:
        return ProbeResult(success=True, message=f"{name} passed", details={"error_count": 0})

    if not errors:
        return ProbeResult(
            success=False,
            message=f"{name} failed with exit code {result.return_code}",
            details={"error_count": 0, "output": _tail(result.output)},
        )

    by_code = Counter(e.code for e in errors)
    details: dict[str, Any] = {
        "error_count": len(errors),
        "top_error_codes": by_code.most_common(TOP_CODES),
        "sample_errors": [e.raw for e in errors[:SAMPLE_ERRORS]],
    }
    return ProbeResult(
        success=False,
        message=f"{name} failed with {len(errors)} errors",
        details=details,
    )


def analyze_lint_output(name: str, result: CommandResult) -> ProbeResult:
    """Extract the problem, error and warning counts from linter output."""
    output = result.output
    details = {
        "problems": _extract_number(output, PROBLEMS_PATTERN),
        "errors": _extract_number(output, ERRORS_PATTERN),
        "warnings": _extract_number(output, WARNINGS_PATTERN),
    }
    if result.success:
        return ProbeResult(success=True, message=f"{name} passed", details=details)
    return ProbeResult(
        success=False,
        message=f"{name} found {details['problems']} problems",
        details=details,
    )


def analyze_generic_output(name: str, result: CommandResult) -> ProbeResult:
    """Pass/fail on the exit code, keeping the tail of the output."""
    if result.success:
        return ProbeResult(success=True, message=f"{name} passed")
    return ProbeResult(
        success=False,
        message=f"{name} failed with exit code {result.return_code}",
        details={"output": _tail(result.output)},
    )


class CommandProbe:
    """Run a command and interpret its output according to the check kind.

    Example:
        probe = CommandProbe("Lint", CheckKind.LINT, ["npx", "eslint", "src"], cwd=root)
        result = await probe()
    """

    def __init__(
        self,
        name: str,
        kind: CheckKind,
        command: Sequence[str],
        cwd: Path | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.name = name
        self.kind = kind
        self.command = list(command)
        self.cwd = cwd
        self.timeout = timeout

    async def __call__(self) -> ProbeResult:
        """Run the command once.

        Raises:
            ValidationCheckError: If the command can't be run at all
        """
        try:
            result = await run_command(self.command, cwd=self.cwd, timeout=self.timeout)
        except CommandError as e:
            raise ValidationCheckError(str(e)) from e

        if self.kind == CheckKind.COMPILE:
            return analyze_compile_output(self.name, result)
        if self.kind == CheckKind.LINT:
            return analyze_lint_output(self.name, result)
        return analyze_generic_output(self.name, result)


def checks_from_config(config: ValidationConfig, project_root: Path) -> list[ValidationCheck]:
    """Build command-backed validation checks from configuration."""
    checks = []
    for entry in config.checks:
        kind = CheckKind(entry.kind)
        probe = CommandProbe(
            name=entry.name,
            kind=kind,
            command=entry.command,
            cwd=project_root,
            timeout=entry.timeout,
        )
        checks.append(
            ValidationCheck(
                name=entry.name,
                kind=kind,
                probe=probe,
                timeout=entry.timeout,
                required=entry.required,
            )
        )
    log.debug("validation_checks_built", checks=[c.name for c in checks])
    return checks
