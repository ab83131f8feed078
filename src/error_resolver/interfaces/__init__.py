"""Protocol definitions for pluggable collaborators."""

from .diagnostics import DiagnosticSource
from .fixer import Fixer
from .probe import ValidationProbe

__all__ = ["DiagnosticSource", "Fixer", "ValidationProbe"]
