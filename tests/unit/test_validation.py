"""Tests for the validation engine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from error_resolver.core.validation import ALL_PASSED, RECOMMENDATIONS, ValidationEngine
from error_resolver.models.validation import (
    CheckKind,
    CheckStatus,
    ProbeResult,
    ValidationCheck,
)
from error_resolver.utils.async_helpers import ValidationCheckError
from error_resolver.utils.metrics import get_metrics


def make_check(
    name: str,
    success: bool = True,
    kind: CheckKind = CheckKind.COMPILE,
    required: bool = False,
    timeout: float = 1.0,
) -> ValidationCheck:
    """Create a check backed by a mock probe."""
    probe = AsyncMock(
        return_value=ProbeResult(success=success, message=f"{name} ran", details={"n": 1})
    )
    return ValidationCheck(name=name, kind=kind, probe=probe, timeout=timeout, required=required)


@pytest.fixture
def engine() -> ValidationEngine:
    """Create a validation engine."""
    return ValidationEngine()


class TestValidate:
    """Tests for full validation passes."""

    async def test_all_pass(self, engine: ValidationEngine) -> None:
        """Test a pass where every check succeeds."""
        summary = await engine.validate(
            [make_check("Compile", required=True), make_check("Lint", kind=CheckKind.LINT)]
        )

        assert summary.overall_success is True
        assert summary.passed_checks == 2
        assert summary.recommendations == [ALL_PASSED]
        assert summary.results[0].details == {"n": 1}

    async def test_required_failure_skips_the_rest(self, engine: ValidationEngine) -> None:
        """Test fail-fast on a required check."""
        lint = make_check("Lint", kind=CheckKind.LINT)
        build = make_check("Build", kind=CheckKind.BUILD)

        summary = await engine.validate(
            [make_check("Compile", success=False, required=True), lint, build]
        )

        assert summary.overall_success is False
        assert [r.status for r in summary.results] == [
            CheckStatus.FAILED,
            CheckStatus.SKIPPED,
            CheckStatus.SKIPPED,
        ]
        assert summary.results[1].message == "Skipped: required check 'Compile' failed"
        lint.probe.assert_not_called()  # type: ignore[attr-defined]
        build.probe.assert_not_called()  # type: ignore[attr-defined]
        assert summary.skipped_checks == 2

    async def test_optional_failure_does_not_fail_the_pass(
        self, engine: ValidationEngine
    ) -> None:
        """Test that optional failures are recorded but don't flip the outcome."""
        summary = await engine.validate(
            [
                make_check("Compile", required=True),
                make_check("Lint", success=False, kind=CheckKind.LINT),
                make_check("Build", kind=CheckKind.BUILD),
            ]
        )

        assert summary.overall_success is True
        assert summary.failed_checks == 1
        assert summary.passed_checks == 2
        assert summary.recommendations == [RECOMMENDATIONS[CheckKind.LINT]]

    async def test_empty_checks(self, engine: ValidationEngine) -> None:
        """Test that no checks is a vacuous pass."""
        summary = await engine.validate([])

        assert summary.overall_success is True
        assert summary.total_checks == 0

    async def test_to_dict(self, engine: ValidationEngine) -> None:
        """Test JSON-ready conversion."""
        summary = await engine.validate([make_check("Compile", success=False, required=True)])
        data = summary.to_dict()

        assert data["overall_success"] is False
        assert data["results"][0]["status"] == "failed"
        assert data["results"][0]["kind"] == "compile"

    async def test_metrics_recorded(self, engine: ValidationEngine) -> None:
        """Test that check outcomes are counted by status."""
        await engine.validate(
            [make_check("Compile", success=False, required=True), make_check("Lint")]
        )

        checks = get_metrics().validation_checks
        assert checks.get(labels={"status": "failed"}) == 1
        assert checks.get(labels={"status": "skipped"}) == 1


class TestRunCheck:
    """Tests for single check execution."""

    async def test_timeout_is_a_failure(self, engine: ValidationEngine) -> None:
        """Test that a probe exceeding its timeout fails the check."""

        async def slow() -> ProbeResult:
            await asyncio.sleep(5)
            return ProbeResult(success=True, message="too late")

        check = ValidationCheck(name="Build", kind=CheckKind.BUILD, probe=slow, timeout=0.05)
        result = await engine.run_check(check)

        assert result.status == CheckStatus.FAILED
        assert result.message == "Build timed out after 0.05s"
        assert result.details == {"timeout": 0.05}
        assert result.execution_time < 1

    async def test_probe_exception_is_a_failure(self, engine: ValidationEngine) -> None:
        """Test that a raising probe is recorded, not propagated."""
        probe = AsyncMock(side_effect=ValidationCheckError("npx not found"))
        check = ValidationCheck(name="Lint", kind=CheckKind.LINT, probe=probe)

        result = await engine.run_check(check)

        assert result.status == CheckStatus.FAILED
        assert result.message == "Lint failed: npx not found"
        assert result.details["exception_type"] == "ValidationCheckError"

    async def test_self_cancelled_check_is_a_failure(self, engine: ValidationEngine) -> None:
        """Test that a check cancelling itself fails without aborting the pass."""

        async def gives_up() -> ProbeResult:
            raise asyncio.CancelledError("gave up")

        check = ValidationCheck(
            name="Compile", kind=CheckKind.COMPILE, probe=gives_up, required=True
        )
        later = make_check("Build", kind=CheckKind.BUILD)

        summary = await engine.validate([check, later])

        assert not summary.overall_success
        assert [r.status for r in summary.results] == [CheckStatus.FAILED, CheckStatus.SKIPPED]
        assert summary.results[0].message == "Compile was cancelled"
        assert summary.results[0].details == {"exception_type": "CancelledError"}
        later.probe.assert_not_called()  # type: ignore[attr-defined]

    async def test_outer_cancellation_propagates(self, engine: ValidationEngine) -> None:
        """Test that cancelling the validation task itself is not swallowed."""
        started = asyncio.Event()

        async def slow() -> ProbeResult:
            started.set()
            await asyncio.sleep(5)
            return ProbeResult(success=True, message="too late")

        check = ValidationCheck(name="Build", kind=CheckKind.BUILD, probe=slow, timeout=10)
        task = asyncio.create_task(engine.run_check(check))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_duration_recorded(self, engine: ValidationEngine) -> None:
        """Test that the check duration lands in the histogram by kind."""
        result = await engine.run_check(make_check("Lint", kind=CheckKind.LINT))

        stats = get_metrics().check_duration.get_stats(labels={"kind": "lint"})
        assert stats["count"] == 1
        assert result.execution_time >= 0


class TestQuickCompileCheck:
    """Tests for the compile-only shortcut."""

    async def test_runs_first_compile_check_only(self, engine: ValidationEngine) -> None:
        """Test that only the first compile check runs."""
        lint = make_check("Lint", kind=CheckKind.LINT)
        first = make_check("Compile", kind=CheckKind.COMPILE)
        second = make_check("Compile 2", kind=CheckKind.COMPILE)

        result = await engine.quick_compile_check([lint, first, second])

        assert result is not None
        assert result.check is first
        lint.probe.assert_not_called()  # type: ignore[attr-defined]
        second.probe.assert_not_called()  # type: ignore[attr-defined]

    async def test_no_compile_check(self, engine: ValidationEngine) -> None:
        """Test the result when nothing compiles."""
        assert await engine.quick_compile_check([make_check("Lint", kind=CheckKind.LINT)]) is None
