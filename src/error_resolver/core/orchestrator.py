"""Execution orchestrator: the backup, execute, retry, rollback, validate loop.

A run is a state machine over RunState. Every transition is checked
against TRANSITIONS, logged and appended to ``RunContext.transitions``.
Phases run strictly in sequence; each attempt is raced against the phase
deadline and retried with tenacity.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from pathlib import Path

import structlog

from error_resolver.core.backup import RUN_KEY, BackupStore
from error_resolver.core.registry import FixerRegistry
from error_resolver.core.validation import ValidationEngine
from error_resolver.interfaces.fixer import Fixer
from error_resolver.models.backup import BackupSnapshot
from error_resolver.models.execution import (
    ExecutionResult,
    FixOutcome,
    RunContext,
    RunState,
    StateTransition,
)
from error_resolver.models.phase import Phase
from error_resolver.models.validation import ValidationCheck
from error_resolver.utils.async_helpers import (
    BackupError,
    CancellationToken,
    FixerError,
    FixerNotFoundError,
    InvalidTransitionError,
    OperationTimeoutError,
    PhaseTimeoutError,
    RollbackError,
    create_retry,
    with_timeout,
)
from error_resolver.utils.logging import LogEventNames, bind_context, unbind_context
from error_resolver.utils.metrics import get_metrics

log = structlog.get_logger()

S = RunState
TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    S.IDLE: frozenset({S.BACKING_UP}),
    S.BACKING_UP: frozenset({S.EXECUTING, S.VALIDATING, S.COMPLETED, S.ABORTED}),
    S.EXECUTING: frozenset(
        {S.RETRYING, S.ROLLING_BACK, S.VALIDATING, S.COMPLETED, S.FAILED, S.ABORTED}
    ),
    S.RETRYING: frozenset({S.EXECUTING, S.ROLLING_BACK, S.VALIDATING, S.COMPLETED, S.FAILED}),
    S.ROLLING_BACK: frozenset({S.ROLLED_BACK, S.ROLLBACK_FAILED}),
    S.VALIDATING: frozenset({S.COMPLETED, S.FAILED}),
}

BACKUPS_DISABLED_WARNING = "Backups are disabled: failures cannot be rolled back"


class ExecutionOrchestrator:
    """Run planned phases against the project with snapshots and rollback.

    Example:
        orchestrator = ExecutionOrchestrator(registry, BackupStore(root), engine, checks)
        context = RunContext(run_id=new_run_id(), project_root=root, config=config.run)
        await orchestrator.run(phases, context)
        print(context.state, context.history)
    """

    def __init__(
        self,
        registry: FixerRegistry,
        store: BackupStore,
        validator: ValidationEngine | None = None,
        checks: Sequence[ValidationCheck] = (),
    ) -> None:
        self._registry = registry
        self._store = store
        self._validator = validator
        self._checks = list(checks)

    async def run(self, phases: Iterable[Phase], context: RunContext) -> RunContext:
        """Execute ``phases`` in priority order and settle the run.

        Args:
            phases: Planned phases
            context: Fresh (IDLE) run context; mutated in place

        Returns:
            The same context, in a terminal state

        Raises:
            InvalidTransitionError: If the context isn't IDLE
        """
        ordered = sorted(phases, key=lambda p: p.priority)
        bind_context(run_id=context.run_id)
        log.info(
            LogEventNames.RUN_STARTING,
            phases=[p.name for p in ordered],
            dry_run=context.config.dry_run,
            backup_enabled=context.config.backup_enabled,
        )
        try:
            await self._execute(ordered, context)
        finally:
            unbind_context("run_id", "phase")

        get_metrics().runs_finished.inc(labels={"state": context.state.value})
        log.info(
            LogEventNames.RUN_FINISHED,
            run_id=context.run_id,
            state=context.state.value,
            fixed=context.fixed_count,
            phases_run=len(context.history),
            warnings=len(context.warnings),
        )
        return context

    # -------------------------------------------------------------------------
    # Run steps
    # -------------------------------------------------------------------------

    async def _execute(self, phases: list[Phase], context: RunContext) -> None:
        config = context.config
        self._transition(context, S.BACKING_UP)

        run_snapshot: BackupSnapshot | None = None
        if phases and not config.dry_run:
            if not config.backup_enabled:
                context.warn(BACKUPS_DISABLED_WARNING)
                log.warning(LogEventNames.BACKUPS_DISABLED)
            else:
                all_files = frozenset().union(
                    *(self._phase_files(p, context.project_root) for p in phases)
                )
                try:
                    run_snapshot = await asyncio.to_thread(
                        self._store.snapshot, context.run_id, RUN_KEY, all_files
                    )
                except BackupError as e:
                    context.error = f"Backup failed: {e}"
                    self._transition(context, S.ABORTED, reason=context.error)
                    return
                context.snapshots[RUN_KEY] = run_snapshot

        for phase in phases:
            self._transition(context, S.EXECUTING, phase=phase.name)
            bind_context(phase=phase.name)
            try:
                await self._run_phase(phase, context, run_snapshot)
            finally:
                unbind_context("phase")
            if context.is_finished:
                return

        await self._validate_and_settle(context)

    async def _run_phase(
        self,
        phase: Phase,
        context: RunContext,
        run_snapshot: BackupSnapshot | None,
    ) -> None:
        config = context.config
        files = self._phase_files(phase, context.project_root)
        log.info(
            LogEventNames.PHASE_STARTED,
            root_cause=phase.root_cause.value,
            errors=phase.error_count,
            files=len(files),
            timeout=phase.timeout,
            max_attempts=phase.max_attempts,
        )

        if config.dry_run:
            context.record(
                ExecutionResult(
                    phase=phase.name,
                    success=True,
                    message=f"Dry run: would fix {phase.error_count} errors in {len(files)} files",
                    details={
                        "dry_run": True,
                        "would_fix": phase.error_count,
                        "files": sorted(str(p) for p in phase.files),
                    },
                )
            )
            log.info(LogEventNames.PHASE_SKIPPED, reason="dry_run")
            return

        snapshot: BackupSnapshot | None = None
        if config.backup_enabled:
            try:
                snapshot = await self._phase_snapshot(phase, files, context, run_snapshot)
            except BackupError as e:
                message = f"Backup failed for {phase.name}: {e}"
                context.record(ExecutionResult(phase=phase.name, success=False, message=message))
                context.error = message
                target = S.FAILED if context.mutated else S.ABORTED
                self._transition(context, target, phase=phase.name, reason=message)
                return

        try:
            fixer = self._registry.get(phase.fixer_ref)
        except FixerNotFoundError as e:
            log.error(LogEventNames.FIXER_NOT_FOUND, fixer_ref=phase.fixer_ref)
            await self._settle_failure(phase, context, snapshot, str(e), attempts=0, elapsed=0.0)
            return

        metrics = get_metrics()
        labels = {"root_cause": phase.root_cause.value}
        started = time.monotonic()
        attempts = 0
        outcome = FixOutcome(fixed_count=0)
        try:
            async for attempt in create_retry(phase.max_attempts, config.retry_backoff):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    if attempts > 1:
                        self._transition(
                            context,
                            S.RETRYING,
                            phase=phase.name,
                            reason=f"attempt {attempts}/{phase.max_attempts}",
                        )
                    outcome = await self._attempt(fixer, phase, files, attempts, context)
        except (PhaseTimeoutError, FixerError) as e:
            elapsed = time.monotonic() - started
            metrics.phase_duration.observe(elapsed, labels=labels)
            await self._settle_failure(phase, context, snapshot, str(e), attempts, elapsed)
            return

        elapsed = time.monotonic() - started
        metrics.phases_executed.inc(labels=labels)
        metrics.phase_duration.observe(elapsed, labels=labels)
        metrics.errors_fixed.inc(outcome.fixed_count, labels=labels)

        context.record(
            ExecutionResult(
                phase=phase.name,
                success=True,
                message=outcome.message
                or f"{phase.name} fixed {outcome.fixed_count} of {phase.error_count} errors",
                fixed_count=outcome.fixed_count,
                execution_time=elapsed,
                attempts=attempts,
                details=dict(outcome.details),
            )
        )
        log.info(
            LogEventNames.PHASE_SUCCEEDED,
            fixed=outcome.fixed_count,
            attempts=attempts,
            duration=round(elapsed, 3),
        )

    async def _phase_snapshot(
        self,
        phase: Phase,
        files: frozenset[Path],
        context: RunContext,
        run_snapshot: BackupSnapshot | None,
    ) -> BackupSnapshot:
        """Snapshot the phase's files.

        Until a fixer has run, the run-level snapshot still reflects the
        on-disk content, so it is reused. Afterwards a fresh snapshot is
        taken so rolling back never undoes an earlier, committed phase.
        """
        key = phase.fixer_ref
        if run_snapshot is not None and not context.mutated and run_snapshot.covers(files):
            snapshot = self._store.record(run_snapshot.restrict(files, key))
        else:
            snapshot = await asyncio.to_thread(self._store.snapshot, context.run_id, key, files)
        context.snapshots[key] = snapshot
        return snapshot

    async def _attempt(
        self,
        fixer: Fixer,
        phase: Phase,
        files: frozenset[Path],
        attempt: int,
        context: RunContext,
    ) -> FixOutcome:
        """Invoke the fixer once under the phase deadline."""
        metrics = get_metrics()
        metrics.fixer_attempts.inc(labels={"root_cause": phase.root_cause.value})
        log.info(
            LogEventNames.FIXER_ATTEMPT,
            attempt=attempt,
            max_attempts=phase.max_attempts,
            timeout=phase.timeout,
        )

        context.mutated = True
        token = CancellationToken.with_timeout(phase.timeout)
        try:
            raw = await with_timeout(
                fixer.fix(files, phase.errors, token),
                phase.timeout,
                error_message=f"{phase.name} timed out after {phase.timeout}s",
                token=token,
            )
        except OperationTimeoutError as e:
            metrics.fixer_timeouts.inc(labels={"root_cause": phase.root_cause.value})
            log.warning(LogEventNames.PHASE_TIMEOUT, attempt=attempt, timeout=phase.timeout)
            raise PhaseTimeoutError(str(e), phase.timeout) from e
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # The fixer cancelled itself (e.g. via token.raise_if_cancelled)
            raise FixerError(f"{phase.name} fixer was cancelled") from None
        except Exception as e:
            log.warning(
                LogEventNames.FIXER_ERROR,
                attempt=attempt,
                exception_type=type(e).__name__,
                exception_message=str(e),
            )
            raise FixerError(f"{phase.name} fixer raised {type(e).__name__}: {e}") from e

        outcome = self._normalize(raw, phase)
        if not outcome.success:
            log.warning(LogEventNames.FIXER_ERROR, attempt=attempt, reported=outcome.message)
            raise FixerError(f"{phase.name} fixer reported failure: {outcome.message}")
        return outcome

    async def _settle_failure(
        self,
        phase: Phase,
        context: RunContext,
        snapshot: BackupSnapshot | None,
        message: str,
        attempts: int,
        elapsed: float,
    ) -> None:
        """Record an exhausted phase and decide whether the run continues."""
        config = context.config
        metrics = get_metrics()
        labels = {"root_cause": phase.root_cause.value}
        metrics.phases_executed.inc(labels=labels)
        metrics.phases_failed.inc(labels=labels)
        log.error(
            LogEventNames.PHASE_FAILED,
            reason=message,
            attempts=attempts,
            required=phase.required,
        )

        if phase.required and config.rollback_on_failure and snapshot is not None:
            self._transition(context, S.ROLLING_BACK, phase=phase.name, reason=message)
            try:
                await asyncio.to_thread(self._store.restore, snapshot)
            except RollbackError as e:
                context.error = f"{message}; rollback failed: {e}"
                context.record(
                    ExecutionResult(
                        phase=phase.name,
                        success=False,
                        message=context.error,
                        execution_time=elapsed,
                        attempts=attempts,
                        details={"unrestored": e.paths},
                    )
                )
                self._transition(context, S.ROLLBACK_FAILED, phase=phase.name, reason=str(e))
                return

            metrics.phases_rolled_back.inc(labels=labels)
            context.error = message
            context.record(
                ExecutionResult(
                    phase=phase.name,
                    success=False,
                    message=message,
                    execution_time=elapsed,
                    attempts=attempts,
                    rolled_back=True,
                    details={"restored": snapshot.file_count},
                )
            )
            self._transition(context, S.ROLLED_BACK, phase=phase.name, reason=message)
            return

        context.record(
            ExecutionResult(
                phase=phase.name,
                success=False,
                message=message,
                execution_time=elapsed,
                attempts=attempts,
            )
        )
        if not phase.required:
            return

        if not config.rollback_on_failure:
            context.warn(f"{phase.name} failed and rollback is disabled; files were left as is")
        else:
            context.warn(f"{phase.name} failed and could not be rolled back: no snapshot")
        context.error = message
        self._transition(context, S.FAILED, phase=phase.name, reason=message)

    async def _validate_and_settle(self, context: RunContext) -> None:
        config = context.config
        if config.validation_enabled and not config.dry_run:
            if self._validator is None or not self._checks:
                context.warn("Validation is enabled but no checks are configured")
            else:
                self._transition(context, S.VALIDATING)
                context.validation = await self._validator.validate(self._checks)

        validation = context.validation
        if validation is None or validation.overall_success:
            self._transition(context, S.COMPLETED)
            return

        if config.continue_on_validation_failure:
            context.warn("Validation failed; run completed because failures are ignored")
            self._transition(context, S.COMPLETED, reason="validation failed (ignored)")
            return

        context.error = "Validation failed"
        self._transition(context, S.FAILED, reason=context.error)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _transition(
        self,
        context: RunContext,
        target: RunState,
        phase: str | None = None,
        reason: str = "",
    ) -> None:
        source = context.state
        if source == target:
            return
        if target not in TRANSITIONS.get(source, frozenset()):
            raise InvalidTransitionError(source.value, target.value)

        context.transitions.append(
            StateTransition(source=source, target=target, phase=phase, reason=reason)
        )
        context.state = target
        log.info(
            LogEventNames.RUN_STATE_CHANGED,
            source=source.value,
            target=target.value,
            phase=phase,
            reason=reason or None,
        )

    @staticmethod
    def _phase_files(phase: Phase, project_root: Path) -> frozenset[Path]:
        root = project_root.resolve()
        return frozenset(
            (path if path.is_absolute() else root / path).resolve() for path in phase.files
        )

    @staticmethod
    def _normalize(raw: object, phase: Phase) -> FixOutcome:
        if isinstance(raw, FixOutcome):
            outcome = raw
        elif isinstance(raw, int) and not isinstance(raw, bool):
            outcome = FixOutcome(fixed_count=raw)
        else:
            raise FixerError(
                f"{phase.name} fixer returned {type(raw).__name__}; expected FixOutcome or int"
            )
        if outcome.fixed_count < 0:
            raise FixerError(f"{phase.name} fixer reported a negative fixed count")
        return outcome
