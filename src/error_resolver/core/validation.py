"""Post-remediation validation with fail-fast required gates.

Checks run in order, each under its own timeout. A failing required check
stops the pass: every later check is recorded as SKIPPED. Validation
results never trigger a rollback.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Any

import structlog

from error_resolver.models.validation import (
    CheckKind,
    CheckStatus,
    ValidationCheck,
    ValidationResult,
    ValidationSummary,
)
from error_resolver.utils.async_helpers import OperationTimeoutError, with_timeout
from error_resolver.utils.logging import LogEventNames
from error_resolver.utils.metrics import Timer, get_metrics

log = structlog.get_logger()

RECOMMENDATIONS: dict[CheckKind, str] = {
    CheckKind.COMPILE: "Fix syntax errors first; they prevent other tools from working properly",
    CheckKind.LINT: "Run the linter with its autofix option to resolve common style issues",
    CheckKind.BUILD: "Build failures may indicate missing dependencies or configuration problems",
    CheckKind.TEST: "Inspect the failing tests; fixes may have changed runtime behavior",
}
ALL_PASSED = "All validation checks passed"


class ValidationEngine:
    """Runs validation checks and aggregates their outcome.

    Example:
        engine = ValidationEngine()
        summary = await engine.validate(checks)
        if not summary.overall_success:
            for rec in summary.recommendations:
                print(rec)
    """

    async def validate(self, checks: Sequence[ValidationCheck]) -> ValidationSummary:
        """Run ``checks`` in order.

        Args:
            checks: Checks to run

        Returns:
            ValidationSummary. ``overall_success`` is True when every check
            either passed or isn't required.
        """
        log.info(LogEventNames.VALIDATION_START, checks=[c.name for c in checks])
        started = time.monotonic()

        results: list[ValidationResult] = []
        blocked_by: str | None = None
        for check in checks:
            if blocked_by is not None:
                results.append(self._skipped(check, blocked_by))
                continue

            result = await self.run_check(check)
            results.append(result)
            if check.required and result.status == CheckStatus.FAILED:
                blocked_by = check.name

        summary = ValidationSummary(
            overall_success=all(r.success or not r.check.required for r in results),
            results=results,
            total_time=time.monotonic() - started,
            recommendations=self._recommendations(results),
        )

        log.info(
            LogEventNames.VALIDATION_COMPLETE,
            overall_success=summary.overall_success,
            passed=summary.passed_checks,
            failed=summary.failed_checks,
            skipped=summary.skipped_checks,
            duration=round(summary.total_time, 3),
        )
        return summary

    async def quick_compile_check(
        self, checks: Sequence[ValidationCheck]
    ) -> ValidationResult | None:
        """Run only the first COMPILE check, if there is one."""
        for check in checks:
            if check.kind == CheckKind.COMPILE:
                return await self.run_check(check)
        return None

    async def run_check(self, check: ValidationCheck) -> ValidationResult:
        """Run a single check under its timeout. Never raises for probe failures."""
        metrics = get_metrics()
        with Timer(metrics.check_duration, labels={"kind": check.kind.value}) as timer:
            status, message, details = await self._run_probe(check)
        result = ValidationResult(
            check=check,
            status=status,
            message=message,
            details=details,
            execution_time=timer.elapsed,
        )

        metrics.validation_checks.inc(labels={"status": result.status.value})

        if result.success:
            log.info(
                LogEventNames.VALIDATION_CHECK_PASSED,
                check=check.name,
                duration=round(result.execution_time, 3),
            )
        else:
            log.warning(
                LogEventNames.VALIDATION_CHECK_FAILED,
                check=check.name,
                required=check.required,
                reason=result.message,
            )
        return result

    @staticmethod
    async def _run_probe(check: ValidationCheck) -> tuple[CheckStatus, str, dict[str, Any]]:
        try:
            probe_result = await with_timeout(
                check.probe(),
                check.timeout,
                error_message=f"{check.name} timed out after {check.timeout}s",
            )
        except OperationTimeoutError as e:
            return CheckStatus.FAILED, str(e), {"timeout": check.timeout}
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # The probe cancelled itself; the validation pass goes on
            return (
                CheckStatus.FAILED,
                f"{check.name} was cancelled",
                {"exception_type": "CancelledError"},
            )
        except Exception as e:
            return (
                CheckStatus.FAILED,
                f"{check.name} failed: {e}",
                {"exception_type": type(e).__name__},
            )

        status = CheckStatus.PASSED if probe_result.success else CheckStatus.FAILED
        return status, probe_result.message, dict(probe_result.details)

    @staticmethod
    def _skipped(check: ValidationCheck, blocked_by: str) -> ValidationResult:
        log.info(LogEventNames.VALIDATION_CHECK_SKIPPED, check=check.name, blocked_by=blocked_by)
        get_metrics().validation_checks.inc(labels={"status": CheckStatus.SKIPPED.value})
        return ValidationResult(
            check=check,
            status=CheckStatus.SKIPPED,
            message=f"Skipped: required check {blocked_by!r} failed",
        )

    @staticmethod
    def _recommendations(results: Sequence[ValidationResult]) -> list[str]:
        recommendations: list[str] = []
        for result in results:
            if result.status != CheckStatus.FAILED:
                continue
            text = RECOMMENDATIONS[result.check.kind]
            if text not in recommendations:
                recommendations.append(text)
        return recommendations or [ALL_PASSED]
