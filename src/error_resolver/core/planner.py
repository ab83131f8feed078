"""Remediation planning: analyzed errors to an ordered list of phases."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from error_resolver.config.schema import PlannerConfig
from error_resolver.core.analyzer import PRIORITY
from error_resolver.models.diagnostic import AnalyzedError, RootCause
from error_resolver.models.phase import Phase
from error_resolver.utils.logging import LogEventNames

log = structlog.get_logger()


@dataclass(frozen=True)
class PhaseDefaults:
    """Built-in settings for the phase of one root cause."""

    name: str
    timeout: float
    retries: int
    required: bool


PHASE_DEFAULTS: dict[RootCause, PhaseDefaults] = {
    RootCause.SYNTAX: PhaseDefaults("Syntax Fixes", timeout=300, retries=2, required=True),
    RootCause.IMPORT: PhaseDefaults("Import Fixes", timeout=180, retries=1, required=True),
    RootCause.TYPE: PhaseDefaults("Type Fixes", timeout=240, retries=1, required=False),
    RootCause.UNUSED: PhaseDefaults("Unused Cleanup", timeout=120, retries=1, required=False),
    RootCause.OTHER: PhaseDefaults("Other Fixes", timeout=120, retries=0, required=False),
}


class RemediationPlanner:
    """Group analyzed errors into ordered remediation phases.

    One phase is produced per root cause that has at least one error.
    Phases are ordered by ascending priority, then by descending group
    size, then by name.

    Example:
        planner = RemediationPlanner(config.planner)
        phases = planner.plan(errors)
    """

    def __init__(self, config: PlannerConfig | None = None) -> None:
        self._config = config or PlannerConfig()

    def plan(self, errors: Iterable[AnalyzedError]) -> list[Phase]:
        """Build the phase list.

        Args:
            errors: Analyzed errors, in any order

        Returns:
            Phases in execution order. Empty when there are no errors.
        """
        groups: dict[RootCause, list[AnalyzedError]] = defaultdict(list)
        for error in errors:
            groups[error.root_cause].append(error)

        phases = [self._build_phase(root_cause, group) for root_cause, group in groups.items()]
        phases.sort(key=lambda p: (p.priority, -p.error_count, p.name))

        log.info(
            LogEventNames.PLAN_CREATED,
            phases=[p.name for p in phases],
            errors=sum(p.error_count for p in phases),
        )
        return phases

    def _build_phase(self, root_cause: RootCause, group: list[AnalyzedError]) -> Phase:
        defaults = PHASE_DEFAULTS[root_cause]
        override = self._config.phases.get(root_cause.value)

        name = defaults.name
        timeout = defaults.timeout
        retries = defaults.retries
        required = defaults.required
        if override is not None:
            name = override.name or name
            timeout = override.timeout if override.timeout is not None else timeout
            retries = override.retries if override.retries is not None else retries
            required = override.required if override.required is not None else required

        # Run-level limits cap every phase
        if self._config.timeout_ceiling is not None:
            timeout = min(timeout, self._config.timeout_ceiling)
        if self._config.retries_ceiling is not None:
            retries = min(retries, self._config.retries_ceiling)

        ordered = sorted(group, key=lambda e: (e.file, e.line, e.column))
        return Phase(
            name=name,
            root_cause=root_cause,
            priority=PRIORITY[root_cause],
            timeout=timeout,
            retries=retries,
            required=required,
            fixer_ref=root_cause.value,
            errors=tuple(ordered),
        )


def plan(errors: Iterable[AnalyzedError], config: PlannerConfig | None = None) -> list[Phase]:
    """Convenience wrapper around RemediationPlanner.plan."""
    return RemediationPlanner(config).plan(errors)
