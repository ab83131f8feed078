"""Remediation pipeline: analyze, plan, execute, validate, summarize.

This module implements the RemediationPipeline class that wires every
component together for a single project root. It:
- Holds the project's RunLock for the whole run
- Threads one explicit RunContext through the orchestrator
- Re-measures diagnostics after the run when a source is available
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog

from error_resolver.config.schema import ResolverConfig
from error_resolver.core.analyzer import DiagnosticAnalyzer
from error_resolver.core.backup import BackupStore, new_run_id
from error_resolver.core.lock import RunLock
from error_resolver.core.orchestrator import ExecutionOrchestrator
from error_resolver.core.planner import RemediationPlanner
from error_resolver.core.registry import FixerRegistry
from error_resolver.core.validation import ValidationEngine
from error_resolver.interfaces.diagnostics import DiagnosticSource
from error_resolver.models.diagnostic import AnalyzedError
from error_resolver.models.execution import RunContext, RunSummary
from error_resolver.models.phase import Phase
from error_resolver.models.validation import ValidationCheck
from error_resolver.utils.async_helpers import ResolverError

log = structlog.get_logger()


class RemediationPipeline:
    """End-to-end remediation for one project root.

    Example:
        pipeline = RemediationPipeline(root, config, registry, checks)
        summary = await pipeline.run(tsc_output)
        sys.exit(summary.exit_code)
    """

    def __init__(
        self,
        project_root: Path,
        config: ResolverConfig,
        registry: FixerRegistry,
        checks: Sequence[ValidationCheck] = (),
        diagnostic_source: DiagnosticSource | None = None,
        lock_timeout: float = 0.0,
    ) -> None:
        self._project_root = project_root.resolve()
        self._config = config
        self._source = diagnostic_source
        self._lock_timeout = lock_timeout

        self.analyzer = DiagnosticAnalyzer(extra_codes=config.classification.codes)
        self.planner = RemediationPlanner(config.planner)
        self.store = BackupStore(self._project_root, config.backup.directory)
        self.validator = ValidationEngine()
        self.orchestrator = ExecutionOrchestrator(
            registry=registry,
            store=self.store,
            validator=self.validator,
            checks=checks,
        )

    @property
    def project_root(self) -> Path:
        return self._project_root

    def prepare(self, raw_text: str | bytes | None) -> tuple[list[AnalyzedError], list[Phase]]:
        """Analyze and plan without executing anything."""
        errors = self.analyzer.analyze(raw_text)
        return errors, self.planner.plan(errors)

    async def run(self, raw_text: str | bytes | None, run_id: str | None = None) -> RunSummary:
        """Run the full pipeline over raw diagnostic text.

        Args:
            raw_text: Type-checker output
            run_id: Identifier for the run; generated when omitted

        Returns:
            RunSummary of the finished run

        Raises:
            RunLockedError: If another run holds the project
        """
        run_id = run_id or new_run_id()
        run_config = self._config.run

        async with RunLock(
            self._project_root,
            run_id=run_id,
            directory=self._config.backup.directory,
            timeout=self._lock_timeout,
        ):
            errors, phases = self.prepare(raw_text)
            context = RunContext(run_id=run_id, project_root=self._project_root, config=run_config)
            try:
                await self.orchestrator.run(phases, context)

                final_count: int | None = None
                if self._source is not None and phases and not run_config.dry_run:
                    final_count = await self._remeasure(self._source, context)
            finally:
                # The run's snapshots live on in context.snapshots and on disk
                self.store.discard(run_id)

        summary = RunSummary.from_context(context, len(errors), final_count)
        log.info(
            "run_summary",
            run_id=run_id,
            state=summary.terminal_state.value,
            initial_errors=summary.initial_error_count,
            final_errors=summary.final_error_count,
            fixed=summary.fixed_count,
        )
        return summary

    async def _remeasure(self, source: DiagnosticSource, context: RunContext) -> int | None:
        try:
            raw = await source.collect()
        except ResolverError as e:
            context.warn(f"Could not re-collect diagnostics; final count is estimated: {e}")
            log.warning("remeasure_failed", error=str(e))
            return None
        return len(self.analyzer.parse(raw))


def create_pipeline(
    project_root: Path,
    config: ResolverConfig,
    registry: FixerRegistry | None = None,
    lock_timeout: float = 0.0,
) -> RemediationPipeline:
    """Build a pipeline with command-backed checks and diagnostic source.

    Fixers come from ``registry`` when given, else from the ``fixers``
    config section.

    Raises:
        ConfigError: If a configured fixer can't be loaded
    """
    from error_resolver.adapters.diagnostics.command import CommandDiagnosticSource
    from error_resolver.adapters.probes.command import checks_from_config

    root = project_root.resolve()
    return RemediationPipeline(
        project_root=root,
        config=config,
        registry=registry if registry is not None else FixerRegistry.from_config(config.fixers),
        checks=checks_from_config(config.validation, root),
        diagnostic_source=CommandDiagnosticSource.from_config(config.diagnostics, root),
        lock_timeout=lock_timeout,
    )
