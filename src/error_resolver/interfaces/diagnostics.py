"""Abstract interface for diagnostic sources."""

from typing import Protocol


class DiagnosticSource(Protocol):
    """Produces raw diagnostic text for a project (e.g. by running the type checker)."""

    async def collect(self) -> str:
        """
        Collect the current diagnostics.

        Returns:
            Raw diagnostic text in the type checker's output grammar

        Raises:
            ResolverError: If diagnostics could not be collected
        """
        ...
