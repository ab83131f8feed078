"""Data models and transfer objects."""

from .backup import BackupSnapshot, content_digest
from .diagnostic import (
    AnalysisSummary,
    AnalyzedError,
    Diagnostic,
    ErrorCategory,
    RootCause,
    RootCauseHint,
    Severity,
)
from .execution import (
    EXIT_CODES,
    TERMINAL_STATES,
    ExecutionResult,
    FixOutcome,
    RunContext,
    RunState,
    RunSummary,
    StateTransition,
)
from .phase import Phase
from .validation import (
    CheckKind,
    CheckStatus,
    ProbeResult,
    ValidationCheck,
    ValidationResult,
    ValidationSummary,
)

__all__ = [
    # Diagnostic models
    "Diagnostic",
    "RootCause",
    "Severity",
    "RootCauseHint",
    "ErrorCategory",
    "AnalyzedError",
    "AnalysisSummary",
    # Planning models
    "Phase",
    # Backup models
    "BackupSnapshot",
    "content_digest",
    # Execution models
    "RunState",
    "TERMINAL_STATES",
    "EXIT_CODES",
    "FixOutcome",
    "ExecutionResult",
    "StateTransition",
    "RunContext",
    "RunSummary",
    # Validation models
    "CheckKind",
    "CheckStatus",
    "ProbeResult",
    "ValidationCheck",
    "ValidationResult",
    "ValidationSummary",
]
