"""Abstract interface for validation probes."""

from typing import Protocol

from ..models.validation import ProbeResult


class ValidationProbe(Protocol):
    """A post-remediation probe (compile, lint, build, test)."""

    async def __call__(self) -> ProbeResult:
        """
        Run the probe once.

        Returns:
            ProbeResult with pass/fail, a message and optional details

        Raises:
            Exception: Recorded as a failed check by the ValidationEngine
        """
        ...
