"""Diagnostic source implementations."""

from .command import CommandDiagnosticSource

__all__ = ["CommandDiagnosticSource"]
