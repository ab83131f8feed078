"""Core remediation components.

This module exports the main business logic classes:
- DiagnosticAnalyzer: Parses and classifies type-checker diagnostics
- RemediationPlanner: Groups errors into ordered phases
- BackupStore: Snapshots and restores phase files
- FixerRegistry: Maps root causes to external fixers
- ExecutionOrchestrator: Runs phases with deadlines, retries and rollback
- ValidationEngine: Runs post-remediation checks
- RunLock: One active run per project root
- RemediationPipeline: Wires everything together for one project
"""

from error_resolver.core.analyzer import DiagnosticAnalyzer, classify
from error_resolver.core.backup import BackupStore, new_run_id
from error_resolver.core.lock import RunLock
from error_resolver.core.orchestrator import TRANSITIONS, ExecutionOrchestrator
from error_resolver.core.pipeline import RemediationPipeline, create_pipeline
from error_resolver.core.planner import PHASE_DEFAULTS, RemediationPlanner, plan
from error_resolver.core.registry import FixerRegistry, load_fixer
from error_resolver.core.validation import ValidationEngine

__all__ = [
    "PHASE_DEFAULTS",
    "TRANSITIONS",
    "BackupStore",
    "DiagnosticAnalyzer",
    "ExecutionOrchestrator",
    "FixerRegistry",
    "RemediationPipeline",
    "RemediationPlanner",
    "RunLock",
    "ValidationEngine",
    "classify",
    "create_pipeline",
    "load_fixer",
    "new_run_id",
    "plan",
]
