"""Tests for configuration loading and validation."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from error_resolver.config.loader import load_config, substitute_env_vars, validate_config
from error_resolver.config.schema import (
    BackupConfig,
    PhaseOverride,
    ResolverConfig,
    RunConfig,
    ValidationCheckConfig,
    ValidationConfig,
)


class TestSubstituteEnvVars:
    """Test environment variable substitution."""

    def test_substitute_single_var(self):
        """Test substituting a single environment variable."""
        os.environ["TEST_VAR"] = "test_value"
        result = substitute_env_vars("Value is ${TEST_VAR}")
        assert result == "Value is test_value"
        del os.environ["TEST_VAR"]

    def test_missing_env_var_raises(self):
        """Test that missing environment variables raise ValueError."""
        with pytest.raises(ValueError, match="Environment variable MISSING not found"):
            substitute_env_vars("Value is ${MISSING}")

    def test_no_substitution_needed(self):
        """Test text without environment variables passes through unchanged."""
        result = substitute_env_vars("plain text without vars")
        assert result == "plain text without vars"


class TestRunConfig:
    """Test RunConfig validation."""

    def test_defaults(self):
        """Test the default run options."""
        config = RunConfig()
        assert config.timeout_seconds == 600
        assert config.max_retries == 2
        assert config.backup_enabled is True
        assert config.validation_enabled is True
        assert config.rollback_on_failure is True
        assert config.continue_on_validation_failure is False
        assert config.dry_run is False

    def test_timeout_must_be_positive(self):
        """Test that a zero timeout is rejected."""
        with pytest.raises(ValidationError):
            RunConfig(timeout_seconds=0)

    def test_retries_bounded(self):
        """Test the retry limits."""
        with pytest.raises(ValidationError):
            RunConfig(max_retries=-1)
        with pytest.raises(ValidationError):
            RunConfig(max_retries=11)


class TestResolverConfig:
    """Test the root configuration."""

    def test_defaults(self):
        """Test the default configuration."""
        config = ResolverConfig()

        assert config.backup.directory == ".error-fix-backups"
        assert [c.name for c in config.validation.checks] == [
            "TypeScript Compilation",
            "ESLint Check",
            "Build Check",
        ]
        assert config.validation.checks[0].required is True
        assert config.fixers == {}

    def test_run_limits_become_planner_ceilings(self):
        """Test that run-level limits are copied into the planner."""
        config = ResolverConfig(run=RunConfig(timeout_seconds=45, max_retries=1))

        assert config.planner.timeout_ceiling == 45
        assert config.planner.retries_ceiling == 1

    def test_explicit_ceilings_kept(self):
        """Test that planner ceilings set explicitly are not overwritten."""
        config = ResolverConfig.model_validate({"planner": {"timeout_ceiling": 10}})

        assert config.planner.timeout_ceiling == 10
        assert config.planner.retries_ceiling == 2

    def test_defaults_not_shared(self):
        """Test that one config's ceilings don't leak into another."""
        ResolverConfig(run=RunConfig(timeout_seconds=5))
        assert ResolverConfig().planner.timeout_ceiling == 600

    def test_fixer_reference_validated(self):
        """Test that fixer references must be module:attribute."""
        with pytest.raises(ValidationError, match="Invalid fixer reference"):
            ResolverConfig(fixers={"syntax": "not a reference"})

    def test_fixer_root_cause_validated(self):
        """Test that fixers are keyed by known root causes."""
        with pytest.raises(ValidationError, match="Unknown root cause"):
            ResolverConfig(fixers={"styling": "pkg.mod:Fixer"})

    def test_classification_codes_validated(self):
        """Test that extra code mappings name a real root cause."""
        with pytest.raises(ValidationError):
            ResolverConfig.model_validate({"classification": {"codes": {"TS9999": "cosmetic"}}})

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        """Test nested settings from environment variables."""
        monkeypatch.setenv("ERROR_RESOLVER_RUN__DRY_RUN", "true")
        monkeypatch.setenv("ERROR_RESOLVER_BACKUP__DIRECTORY", ".backups")

        config = ResolverConfig()

        assert config.run.dry_run is True
        assert config.backup.directory == ".backups"


class TestBackupConfig:
    """Test BackupConfig validation."""

    @pytest.mark.parametrize("directory", ["/tmp/backups", "../outside", "a/../../b"])
    def test_directory_must_stay_in_project(self, directory):
        """Test that backup directories can't escape the project root."""
        with pytest.raises(ValidationError, match="relative to the project"):
            BackupConfig(directory=directory)


class TestValidationCheckConfig:
    """Test ValidationCheckConfig validation."""

    def test_empty_command_rejected(self):
        """Test that a check needs a command."""
        with pytest.raises(ValidationError, match="non-empty"):
            ValidationCheckConfig(name="Compile", kind="compile", command=[])

    def test_unknown_kind_rejected(self):
        """Test that check kinds are a closed set."""
        with pytest.raises(ValidationError):
            ValidationCheckConfig(name="Format", kind="format", command=["prettier"])

    def test_phase_override_bounds(self):
        """Test override limits."""
        with pytest.raises(ValidationError):
            PhaseOverride(timeout=0)


class TestLoadConfig:
    """Test loading configuration from YAML."""

    def test_load_none_returns_defaults(self):
        """Test that no path means defaults."""
        assert load_config(None) == ResolverConfig()

    def test_load_config_from_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Test loading a full configuration file with env substitution."""
        monkeypatch.setenv("TEST_TSC", "tsc")
        config_file = tmp_path / "error-resolver.yaml"
        config_file.write_text(
            """
run:
  timeout_seconds: 120
  max_retries: 1
  continue_on_validation_failure: true

planner:
  phases:
    unused:
      required: true
      retries: 0

classification:
  codes:
    TS9001: syntax

fixers:
  syntax: my_fixers.syntax:SyntaxFixer

validation:
  checks:
    - name: Compile
      kind: compile
      command: ["npx", "${TEST_TSC}", "--noEmit"]
      required: true

diagnostics:
  command: ["npx", "${TEST_TSC}", "--noEmit", "--pretty", "false"]
  timeout: 300

logging:
  level: DEBUG
  format: json
"""
        )

        config = load_config(config_file)

        assert config.run.timeout_seconds == 120
        assert config.planner.timeout_ceiling == 120
        assert config.planner.phases["unused"].required is True
        assert config.classification.codes == {"TS9001": "syntax"}
        assert config.fixers["syntax"] == "my_fixers.syntax:SyntaxFixer"
        assert config.validation.checks[0].command == ["npx", "tsc", "--noEmit"]
        assert config.diagnostics.timeout == 300
        assert config.logging.format == "json"

    def test_empty_file_is_defaults(self, tmp_path: Path):
        """Test that an empty file yields the defaults."""
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")

        assert load_config(config_file) == ResolverConfig()

    def test_non_mapping_rejected(self, tmp_path: Path):
        """Test that a YAML list at the root is rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="must be a mapping"):
            load_config(config_file)

    def test_load_config_missing_file(self):
        """Test that loading non-existent file raises error."""
        with pytest.raises(FileNotFoundError):
            load_config(Path("/nonexistent/config.yaml"))

    def test_load_config_missing_env_var(self, tmp_path: Path):
        """Test that missing environment variable raises error."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("backup:\n  directory: ${MISSING_VAR}\n")

        with pytest.raises(ValueError, match="Environment variable MISSING_VAR not found"):
            load_config(config_file)


class TestValidateConfig:
    """Test cross-field configuration validation."""

    def test_duplicate_check_names(self):
        """Test that check names must be unique."""
        check = ValidationCheckConfig(name="Compile", kind="compile", command=["tsc"])
        config = ResolverConfig(validation=ValidationConfig(checks=[check, check]))

        with pytest.raises(ValueError, match="Duplicate validation check names: Compile"):
            validate_config(config)

    def test_validation_enabled_without_checks(self):
        """Test that enabling validation requires checks."""
        config = ResolverConfig(validation=ValidationConfig(checks=[]))

        with pytest.raises(ValueError, match="no validation checks"):
            validate_config(config)

    def test_validation_disabled_without_checks(self):
        """Test that no checks is fine when validation is off."""
        config = ResolverConfig(
            run=RunConfig(validation_enabled=False),
            validation=ValidationConfig(checks=[]),
        )
        validate_config(config)

    def test_valid_config_passes(self):
        """Test that valid configuration passes validation."""
        # Should not raise
        validate_config(ResolverConfig())
