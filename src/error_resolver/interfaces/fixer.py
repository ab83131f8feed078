"""Abstract interface for remediation fixers."""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from ..models.diagnostic import AnalyzedError
from ..models.execution import FixOutcome
from ..utils.async_helpers import CancellationToken


class Fixer(Protocol):
    """Abstract interface for a file-rewriting routine for one root cause.

    Concrete fixers live outside this package and are registered with the
    FixerRegistry. The orchestrator guarantees that every file in ``files``
    has been snapshotted before ``fix`` is called.
    """

    async def fix(
        self,
        files: frozenset[Path],
        errors: Sequence[AnalyzedError],
        token: CancellationToken,
    ) -> FixOutcome | int:
        """
        Attempt to remediate ``errors`` by rewriting ``files``.

        Implementations must be idempotent (they may be retried with the
        same inputs) and must not touch any file outside ``files``. They
        should check ``token`` between units of work and stop early once
        it is cancelled; the orchestrator stops waiting at the deadline
        either way.

        Args:
            files: Absolute paths of the files this phase may modify
            errors: The diagnostics this phase addresses
            token: Cancellation token carrying the phase deadline

        Returns:
            A FixOutcome, or an int as shorthand for
            ``FixOutcome(fixed_count=n)``

        Raises:
            Exception: Any exception counts as a failed attempt
        """
        ...
