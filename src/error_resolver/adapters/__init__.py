"""Concrete implementations of collaborator interfaces."""

from .diagnostics.command import CommandDiagnosticSource
from .probes.command import CommandProbe, checks_from_config

__all__ = [
    "CommandDiagnosticSource",
    "CommandProbe",
    "checks_from_config",
]
