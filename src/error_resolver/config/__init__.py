"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    BackupConfig,
    ClassificationConfig,
    DiagnosticsConfig,
    LoggingConfig,
    PhaseOverride,
    PlannerConfig,
    ResolverConfig,
    RunConfig,
    ValidationCheckConfig,
    ValidationConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "ResolverConfig",
    # Top-level configs
    "RunConfig",
    "PlannerConfig",
    "ClassificationConfig",
    "ValidationConfig",
    "DiagnosticsConfig",
    "BackupConfig",
    "LoggingConfig",
    # Nested configs
    "PhaseOverride",
    "ValidationCheckConfig",
]
