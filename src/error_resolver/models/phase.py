"""Data models for planned remediation phases."""

from dataclasses import dataclass
from pathlib import Path

from .diagnostic import AnalyzedError, RootCause


@dataclass(frozen=True)
class Phase:
    """An ordered unit of remediation work scoped to one root cause."""

    name: str  # e.g., "Syntax Fixes"
    root_cause: RootCause
    priority: int
    timeout: float  # Seconds per attempt
    retries: int  # Additional attempts after the first
    required: bool  # Failure blocks later phases
    fixer_ref: str  # Registry key
    errors: tuple[AnalyzedError, ...]

    def __post_init__(self) -> None:
        if not self.errors:
            raise ValueError(f"Phase {self.name!r} has no errors to address")
        if self.timeout <= 0:
            raise ValueError(f"Phase {self.name!r} timeout must be positive")
        if self.retries < 0:
            raise ValueError(f"Phase {self.name!r} retries must not be negative")

    @property
    def files(self) -> frozenset[Path]:
        """Unique file paths across this phase's errors."""
        return frozenset(Path(error.file) for error in self.errors)

    @property
    def max_attempts(self) -> int:
        """Total number of fixer invocations allowed."""
        return self.retries + 1

    @property
    def error_count(self) -> int:
        return len(self.errors)
