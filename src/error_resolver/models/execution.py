"""Data models for phase execution and run state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from error_resolver.config.schema import RunConfig
    from error_resolver.models.backup import BackupSnapshot
    from error_resolver.models.validation import ValidationSummary


class RunState(StrEnum):
    """States of the orchestration state machine."""

    IDLE = "idle"
    BACKING_UP = "backing_up"
    EXECUTING = "executing"
    RETRYING = "retrying"
    ROLLING_BACK = "rolling_back"
    VALIDATING = "validating"
    # Terminal
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    ABORTED = "aborted"  # Backup failed before any file was touched
    ROLLBACK_FAILED = "rollback_failed"  # File state of unknown provenance

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def exit_code(self) -> int:
        """Process exit code for a terminal state."""
        return EXIT_CODES.get(self, 1)


TERMINAL_STATES = frozenset(
    {
        RunState.COMPLETED,
        RunState.ROLLED_BACK,
        RunState.FAILED,
        RunState.ABORTED,
        RunState.ROLLBACK_FAILED,
    }
)

EXIT_CODES: dict[RunState, int] = {
    RunState.COMPLETED: 0,
    RunState.FAILED: 1,
    RunState.ROLLED_BACK: 2,
    RunState.ABORTED: 3,
    RunState.ROLLBACK_FAILED: 4,
}


@dataclass
class FixOutcome:
    """What a fixer reports for one invocation."""

    fixed_count: int
    success: bool = True
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionResult:
    """Settled outcome of one phase. Appended to the run history."""

    phase: str
    success: bool
    message: str
    fixed_count: int = 0
    execution_time: float = 0.0  # Seconds across all attempts
    attempts: int = 0
    rolled_back: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def retries_used(self) -> int:
        return max(self.attempts - 1, 0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "phase": self.phase,
            "success": self.success,
            "message": self.message,
            "fixed_count": self.fixed_count,
            "execution_time": round(self.execution_time, 3),
            "attempts": self.attempts,
            "retries_used": self.retries_used,
            "rolled_back": self.rolled_back,
            "details": self.details,
        }


@dataclass(frozen=True)
class StateTransition:
    """One recorded state change."""

    source: RunState
    target: RunState
    phase: str | None = None
    reason: str = ""
    at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class RunContext:
    """All mutable state for a single run, threaded through every call."""

    run_id: str
    project_root: Path
    config: RunConfig
    state: RunState = RunState.IDLE
    history: list[ExecutionResult] = field(default_factory=list)
    transitions: list[StateTransition] = field(default_factory=list)
    snapshots: dict[str, BackupSnapshot] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    validation: ValidationSummary | None = None
    error: str | None = None
    mutated: bool = False  # True once any fixer has been invoked for real
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def fixed_count(self) -> int:
        return sum(result.fixed_count for result in self.history)

    @property
    def is_finished(self) -> bool:
        return self.state.is_terminal

    def record(self, result: ExecutionResult) -> None:
        """Append a settled phase result. History is append-only."""
        self.history.append(result)

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)


@dataclass
class RunSummary:
    """Output of a run, consumed by reporting."""

    run_id: str
    initial_error_count: int
    final_error_count: int
    fixed_count: int
    history: list[ExecutionResult]
    validation: ValidationSummary | None
    terminal_state: RunState
    warnings: list[str] = field(default_factory=list)
    backup_enabled: bool = True
    dry_run: bool = False
    final_count_measured: bool = False  # True when re-collected from the tool

    @property
    def exit_code(self) -> int:
        return self.terminal_state.exit_code

    @property
    def success(self) -> bool:
        return self.terminal_state == RunState.COMPLETED

    @classmethod
    def from_context(
        cls,
        context: RunContext,
        initial_error_count: int,
        final_error_count: int | None = None,
    ) -> RunSummary:
        """Build a summary from a finished run.

        Without a measured ``final_error_count`` the estimate is the
        initial count minus what fixers reported, floored at zero.
        """
        measured = final_error_count is not None
        if final_error_count is None:
            final_error_count = max(initial_error_count - context.fixed_count, 0)
        return cls(
            run_id=context.run_id,
            initial_error_count=initial_error_count,
            final_error_count=final_error_count,
            fixed_count=context.fixed_count,
            history=list(context.history),
            validation=context.validation,
            terminal_state=context.state,
            warnings=list(context.warnings),
            backup_enabled=context.config.backup_enabled,
            dry_run=context.config.dry_run,
            final_count_measured=measured,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "initial_error_count": self.initial_error_count,
            "final_error_count": self.final_error_count,
            "final_count_measured": self.final_count_measured,
            "fixed_count": self.fixed_count,
            "terminal_state": self.terminal_state.value,
            "exit_code": self.exit_code,
            "backup_enabled": self.backup_enabled,
            "dry_run": self.dry_run,
            "warnings": list(self.warnings),
            "history": [result.to_dict() for result in self.history],
            "validation": self.validation.to_dict() if self.validation else None,
        }
