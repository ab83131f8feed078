"""Data models for post-remediation validation."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class CheckKind(StrEnum):
    """What a validation check exercises."""

    COMPILE = "compile"
    LINT = "lint"
    BUILD = "build"
    TEST = "test"


class CheckStatus(StrEnum):
    """Outcome of a single validation check."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ProbeResult:
    """What a validation probe reports."""

    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationCheck:
    """A post-remediation probe with pass/fail semantics."""

    name: str
    kind: CheckKind
    probe: Callable[[], Awaitable[ProbeResult]]
    timeout: float = 60.0
    required: bool = False


@dataclass
class ValidationResult:
    """Result of running (or skipping) one check."""

    check: ValidationCheck
    status: CheckStatus
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    execution_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == CheckStatus.PASSED


@dataclass
class ValidationSummary:
    """Aggregate of a validation pass. The terminal artifact of a run."""

    overall_success: bool
    results: list[ValidationResult] = field(default_factory=list)
    total_time: float = 0.0
    recommendations: list[str] = field(default_factory=list)

    @property
    def total_checks(self) -> int:
        return len(self.results)

    @property
    def passed_checks(self) -> int:
        return sum(1 for r in self.results if r.status == CheckStatus.PASSED)

    @property
    def failed_checks(self) -> int:
        return sum(1 for r in self.results if r.status == CheckStatus.FAILED)

    @property
    def skipped_checks(self) -> int:
        return sum(1 for r in self.results if r.status == CheckStatus.SKIPPED)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "overall_success": self.overall_success,
            "total_checks": self.total_checks,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "skipped_checks": self.skipped_checks,
            "total_time": round(self.total_time, 3),
            "results": [
                {
                    "name": r.check.name,
                    "kind": r.check.kind.value,
                    "required": r.check.required,
                    "status": r.status.value,
                    "message": r.message,
                    "details": r.details,
                    "execution_time": round(r.execution_time, 3),
                }
                for r in self.results
            ],
            "recommendations": list(self.recommendations),
        }
