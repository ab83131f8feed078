"""Pydantic models for configuration schema."""

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_CAUSE_KEYS = ("syntax", "import", "type", "unused", "other")

# "package.module:attribute"
FIXER_REF_PATTERN = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$")


class RunConfig(BaseModel):
    """Options recognized by a single remediation run."""

    timeout_seconds: float = Field(600, gt=0, description="Ceiling on any phase timeout")
    max_retries: int = Field(2, ge=0, le=10, description="Ceiling on any phase retry count")
    retry_backoff: float = Field(
        0.0, ge=0.0, le=60.0, description="Exponential wait base between retries (0 = none)"
    )
    backup_enabled: bool = True
    validation_enabled: bool = True
    rollback_on_failure: bool = True
    continue_on_validation_failure: bool = False
    dry_run: bool = False


class PhaseOverride(BaseModel):
    """Per root cause overrides for planned phases."""

    name: str | None = None
    timeout: float | None = Field(None, gt=0)
    retries: int | None = Field(None, ge=0, le=10)
    required: bool | None = None


class PlannerConfig(BaseModel):
    """Planner configuration."""

    phases: dict[str, PhaseOverride] = {}
    timeout_ceiling: float | None = Field(None, gt=0)
    retries_ceiling: int | None = Field(None, ge=0)

    @field_validator("phases")
    @classmethod
    def validate_phase_keys(cls, v: dict[str, PhaseOverride]) -> dict[str, PhaseOverride]:
        """Only known root causes can be overridden."""
        for key in v:
            if key not in ROOT_CAUSE_KEYS:
                raise ValueError(
                    f"Unknown root cause {key!r}. Expected one of: {', '.join(ROOT_CAUSE_KEYS)}"
                )
        return v


class ClassificationConfig(BaseModel):
    """Extra diagnostic code to root cause mappings."""

    codes: dict[str, Literal["syntax", "import", "type", "unused", "other"]] = {}


class ValidationCheckConfig(BaseModel):
    """A post-remediation check backed by a command."""

    name: str
    kind: Literal["compile", "lint", "build", "test"]
    command: list[str]
    timeout: float = Field(60, gt=0)
    required: bool = False

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: list[str]) -> list[str]:
        """Command must be a non-empty argument list."""
        if not v or not v[0].strip():
            raise ValueError("Check command must be a non-empty list of arguments")
        return v


def _default_checks() -> list[ValidationCheckConfig]:
    return [
        ValidationCheckConfig(
            name="TypeScript Compilation",
            kind="compile",
            command=["npx", "tsc", "--noEmit", "--skipLibCheck"],
            timeout=60,
            required=True,
        ),
        ValidationCheckConfig(
            name="ESLint Check",
            kind="lint",
            command=["npx", "eslint", "src", "--ext", ".ts,.tsx", "--max-warnings", "0"],
            timeout=30,
            required=False,
        ),
        ValidationCheckConfig(
            name="Build Check",
            kind="build",
            command=["npm", "run", "build"],
            timeout=120,
            required=False,
        ),
    ]


class ValidationConfig(BaseModel):
    """Validation configuration."""

    checks: list[ValidationCheckConfig] = Field(default_factory=_default_checks)


class DiagnosticsConfig(BaseModel):
    """How to (re)collect diagnostics from the project."""

    command: list[str] = ["npx", "tsc", "--noEmit", "--skipLibCheck"]
    timeout: float = Field(120, gt=0)


class BackupConfig(BaseModel):
    """Snapshot storage configuration."""

    directory: str = ".error-fix-backups"

    @field_validator("directory")
    @classmethod
    def validate_directory(cls, v: str) -> str:
        """Backups live inside the project root."""
        path = Path(v)
        if path.is_absolute() or ".." in path.parts:
            raise ValueError(f"Backup directory must be relative to the project: {v}")
        return v


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("error-resolver.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class ResolverConfig(BaseSettings):
    """Root configuration for error-resolver."""

    run: RunConfig = Field(default_factory=RunConfig)
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    fixers: dict[str, str] = {}
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="ERROR_RESOLVER_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @field_validator("fixers")
    @classmethod
    def validate_fixers(cls, v: dict[str, str]) -> dict[str, str]:
        """Fixer references are 'module:attribute' keyed by root cause."""
        for key, ref in v.items():
            if key not in ROOT_CAUSE_KEYS:
                raise ValueError(f"Unknown root cause for fixer: {key}")
            if not FIXER_REF_PATTERN.match(ref):
                raise ValueError(f"Invalid fixer reference for {key}: {ref}. Expected: module:attr")
        return v

    @model_validator(mode="after")
    def apply_run_ceilings(self) -> "ResolverConfig":
        """The run-level timeout and retry limits cap every planned phase."""
        if self.planner.timeout_ceiling is None:
            self.planner.timeout_ceiling = self.run.timeout_seconds
        if self.planner.retries_ceiling is None:
            self.planner.retries_ceiling = self.run.max_retries
        return self
