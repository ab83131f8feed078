"""Data models for parsed and analyzed diagnostics."""

from dataclasses import dataclass, field
from enum import StrEnum


class RootCause(StrEnum):
    """Root-cause category of a diagnostic. Selects the remediation phase."""

    SYNTAX = "syntax"
    IMPORT = "import"
    TYPE = "type"
    UNUSED = "unused"
    OTHER = "other"


class Severity(StrEnum):
    """How badly a diagnostic blocks the rest of the tree."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Diagnostic:
    """One parsed diagnostic line."""

    file: str
    line: int  # 1-based
    column: int  # 1-based
    code: str  # e.g., "TS1005"
    message: str  # e.g., "',' expected."
    raw: str = ""  # Original diagnostic line

    @property
    def location(self) -> str:
        """Location in the tool's own format: 'path(line,col)'."""
        return f"{self.file}({self.line},{self.column})"

    def format(self) -> str:
        """Render back to the diagnostic grammar."""
        return f"{self.location}: error {self.code}: {self.message}"


@dataclass(frozen=True)
class RootCauseHint:
    """Free-form hints about what produced a diagnostic."""

    pattern: str | None = None
    suggested_fix: str | None = None
    dependencies: tuple[str, ...] = ()


@dataclass(frozen=True)
class ErrorCategory:
    """Classification of a diagnostic."""

    root_cause: RootCause
    severity: Severity


@dataclass(frozen=True)
class AnalyzedError:
    """A diagnostic enriched with its category and priority."""

    diagnostic: Diagnostic
    category: ErrorCategory
    priority: int  # Lower runs first
    hint: RootCauseHint = field(default_factory=RootCauseHint)

    @property
    def file(self) -> str:
        return self.diagnostic.file

    @property
    def line(self) -> int:
        return self.diagnostic.line

    @property
    def column(self) -> int:
        return self.diagnostic.column

    @property
    def code(self) -> str:
        return self.diagnostic.code

    @property
    def message(self) -> str:
        return self.diagnostic.message

    @property
    def root_cause(self) -> RootCause:
        return self.category.root_cause

    @property
    def severity(self) -> Severity:
        return self.category.severity


@dataclass
class AnalysisSummary:
    """Grouped view of an analysis pass, used for reporting only."""

    total_errors: int
    by_file: dict[str, list[AnalyzedError]] = field(default_factory=dict)
    by_root_cause: dict[RootCause, list[AnalyzedError]] = field(default_factory=dict)
    by_severity: dict[Severity, list[AnalyzedError]] = field(default_factory=dict)
    by_code: dict[str, int] = field(default_factory=dict)
    critical_files: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        """Number of distinct files with at least one diagnostic."""
        return len(self.by_file)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_errors": self.total_errors,
            "file_count": self.file_count,
            "by_root_cause": {k.value: len(v) for k, v in self.by_root_cause.items()},
            "by_severity": {k.value: len(v) for k, v in self.by_severity.items()},
            "by_code": dict(self.by_code),
            "critical_files": list(self.critical_files),
            "recommendations": list(self.recommendations),
        }
