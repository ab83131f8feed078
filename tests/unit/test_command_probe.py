"""Tests for the command-backed probes and diagnostic source."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from error_resolver.adapters.diagnostics.command import CommandDiagnosticSource
from error_resolver.adapters.probes.command import (
    MAX_OUTPUT_CHARS,
    CommandProbe,
    analyze_compile_output,
    analyze_generic_output,
    analyze_lint_output,
    checks_from_config,
)
from error_resolver.config.schema import DiagnosticsConfig, ValidationConfig
from error_resolver.models.validation import CheckKind
from error_resolver.utils.async_helpers import ValidationCheckError
from error_resolver.utils.safe_subprocess import CommandNotFoundError, CommandResult

TSC_OUTPUT = """\
src/App.tsx(3,10): error TS2307: Cannot find module './missing'.
src/App.tsx(8,5): error TS2339: Property 'foo' does not exist on type 'Props'.
src/utils.ts(1,1): error TS2307: Cannot find module 'lodash'.
src/utils.ts(9,3): error TS2322: Type 'string' is not assignable to type 'number'.
"""


def result(return_code: int = 0, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(stdout=stdout, stderr=stderr, return_code=return_code, command=["x"])


class TestAnalyzeCompileOutput:
    """Tests for compiler output interpretation."""

    def test_clean_compile(self) -> None:
        """Test a passing compile."""
        probe = analyze_compile_output("TypeScript Compilation", result(0))
        assert probe.success
        assert probe.message == "TypeScript Compilation passed"
        assert probe.details == {"error_count": 0}

    def test_counts_errors_by_code(self) -> None:
        """Test the error count and the most frequent codes."""
        probe = analyze_compile_output("Compile", result(2, stdout=TSC_OUTPUT))

        assert not probe.success
        assert probe.message == "Compile failed with 4 errors"
        assert probe.details["error_count"] == 4
        assert probe.details["top_error_codes"][0] == ("TS2307", 2)
        assert len(probe.details["sample_errors"]) == 3

    def test_failure_without_diagnostics(self) -> None:
        """Test a crash that prints nothing parseable."""
        probe = analyze_compile_output("Compile", result(1, stderr="tsconfig.json not found"))

        assert not probe.success
        assert probe.message == "Compile failed with exit code 1"
        assert probe.details["output"] == "tsconfig.json not found"


class TestAnalyzeLintOutput:
    """Tests for linter output interpretation."""

    def test_counts_problems(self) -> None:
        """Test the problem summary line."""
        output = (
            "\n/src/App.tsx\n  3:1  error  no-unused-vars\n\n"
            "✖ 5 problems (3 errors, 2 warnings)"
        )
        probe = analyze_lint_output("ESLint Check", result(1, stdout=output))

        assert not probe.success
        assert probe.message == "ESLint Check found 5 problems"
        assert probe.details == {"problems": 5, "errors": 3, "warnings": 2}

    def test_clean_lint(self) -> None:
        """Test a passing lint run."""
        probe = analyze_lint_output("ESLint Check", result(0))
        assert probe.success
        assert probe.details == {"problems": 0, "errors": 0, "warnings": 0}


class TestAnalyzeGenericOutput:
    """Tests for exit-code-only checks."""

    def test_pass(self) -> None:
        assert analyze_generic_output("Build Check", result(0)).success

    def test_failure_keeps_output_tail(self) -> None:
        """Test that long output is truncated from the front."""
        output = "x" * (MAX_OUTPUT_CHARS + 50) + "END"
        probe = analyze_generic_output("Build Check", result(1, stdout=output))

        assert not probe.success
        assert probe.message == "Build Check failed with exit code 1"
        assert len(probe.details["output"]) == MAX_OUTPUT_CHARS
        assert probe.details["output"].endswith("END")


class TestCommandProbe:
    """Tests for running probes."""

    async def test_runs_command_in_project(self, tmp_path: Path) -> None:
        """Test the command, directory and timeout handed to run_command."""
        probe = CommandProbe(
            "Compile", CheckKind.COMPILE, ["npx", "tsc", "--noEmit"], cwd=tmp_path, timeout=15
        )

        with patch(
            "error_resolver.adapters.probes.command.run_command",
            new_callable=AsyncMock,
            return_value=result(0),
        ) as mock_run:
            outcome = await probe()

        assert outcome.success
        mock_run.assert_awaited_once_with(["npx", "tsc", "--noEmit"], cwd=tmp_path, timeout=15)

    @pytest.mark.parametrize(
        ("kind", "message"),
        [
            (CheckKind.COMPILE, "Check failed with 4 errors"),
            (CheckKind.LINT, "Check found 0 problems"),
            (CheckKind.BUILD, "Check failed with exit code 2"),
            (CheckKind.TEST, "Check failed with exit code 2"),
        ],
    )
    async def test_interprets_by_kind(self, kind: CheckKind, message: str) -> None:
        """Test that each kind picks its interpreter."""
        probe = CommandProbe("Check", kind, ["run"])

        with patch(
            "error_resolver.adapters.probes.command.run_command",
            new_callable=AsyncMock,
            return_value=result(2, stdout=TSC_OUTPUT),
        ):
            outcome = await probe()

        assert outcome.message == message

    async def test_command_errors_become_check_errors(self) -> None:
        """Test that a missing tool surfaces as ValidationCheckError."""
        probe = CommandProbe("Lint", CheckKind.LINT, ["npx", "eslint"])

        with (
            patch(
                "error_resolver.adapters.probes.command.run_command",
                new_callable=AsyncMock,
                side_effect=CommandNotFoundError("Executable not found: npx"),
            ),
            pytest.raises(ValidationCheckError, match="Executable not found"),
        ):
            await probe()


class TestChecksFromConfig:
    """Tests for building checks from configuration."""

    def test_default_checks(self, tmp_path: Path) -> None:
        """Test the default compile, lint and build checks."""
        checks = checks_from_config(ValidationConfig(), tmp_path)

        assert [c.kind for c in checks] == [CheckKind.COMPILE, CheckKind.LINT, CheckKind.BUILD]
        assert [c.required for c in checks] == [True, False, False]
        assert [c.timeout for c in checks] == [60, 30, 120]
        probe = checks[0].probe
        assert isinstance(probe, CommandProbe)
        assert probe.cwd == tmp_path
        assert probe.command[:2] == ["npx", "tsc"]


class TestCommandDiagnosticSource:
    """Tests for collecting diagnostics with a command."""

    async def test_collect_returns_output(self, tmp_path: Path) -> None:
        """Test that a failing type check still yields its output."""
        source = CommandDiagnosticSource.from_config(
            DiagnosticsConfig(command=["npx", "tsc"], timeout=30), tmp_path
        )

        with patch(
            "error_resolver.adapters.diagnostics.command.run_command",
            new_callable=AsyncMock,
            return_value=result(2, stdout=TSC_OUTPUT),
        ) as mock_run:
            output = await source.collect()

        assert output == TSC_OUTPUT
        mock_run.assert_awaited_once_with(["npx", "tsc"], cwd=tmp_path, timeout=30)

    async def test_collect_propagates_missing_tool(self, tmp_path: Path) -> None:
        """Test that an unrunnable command raises."""
        source = CommandDiagnosticSource(["npx", "tsc"], cwd=tmp_path)

        with (
            patch(
                "error_resolver.adapters.diagnostics.command.run_command",
                new_callable=AsyncMock,
                side_effect=CommandNotFoundError("Executable not found: npx"),
            ),
            pytest.raises(CommandNotFoundError),
        ):
            await source.collect()
