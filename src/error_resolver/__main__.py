"""Entry point for running error-resolver.

This module provides the command line interface. It handles:
- Configuration loading and CLI overrides
- Logging setup
- Reading diagnostics from a file, stdin or the configured command
- The analyze, fix, validate and undo commands
- Exit codes derived from the run's terminal state
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog

from error_resolver._version import __version__

log = structlog.get_logger()

DEFAULT_CONFIG_NAME = "error-resolver.yaml"


def setup_logging(
    debug: bool = False,
    log_format: str = "console",
    file_path: Path | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging
    """
    from error_resolver.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format

    configure_logging(
        level=level,
        log_format=fmt,
        file_path=file_path,
        file_enabled=file_enabled,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="error-resolver",
        description="Plan and apply staged remediation of type-checker diagnostics",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-p",
        "--project",
        type=Path,
        default=Path.cwd(),
        help="Project root (default: current directory)",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help=f"Path to configuration file (default: <project>/{DEFAULT_CONFIG_NAME} if present)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Parse, classify and plan without changing files")
    _add_input_argument(analyze)

    fix = sub.add_parser("fix", help="Run the full remediation pipeline")
    _add_input_argument(fix)
    fix.add_argument("--dry-run", action="store_true", help="Plan and report; touch nothing")
    fix.add_argument("--no-backup", action="store_true", help="Disable snapshots (no rollback)")
    fix.add_argument("--no-validate", action="store_true", help="Skip post-run validation")
    fix.add_argument("--no-rollback", action="store_true", help="Never roll back failed phases")
    fix.add_argument("--run-id", default=None, help="Identifier for this run")
    fix.add_argument(
        "--lock-timeout",
        type=float,
        default=0.0,
        help="Seconds to wait for another run on this project to finish",
    )
    fix.add_argument("--metrics", action="store_true", help="Include metrics in the report")

    validate = sub.add_parser("validate", help="Run the configured validation checks")
    validate.add_argument("--quick", action="store_true", help="Run only the first compile check")

    undo = sub.add_parser("undo", help="Restore files from a previous run's backup")
    undo.add_argument("--run-id", default=None, help="Run to restore (default: most recent)")
    undo.add_argument("--key", default="run", help="Snapshot key to restore (default: run)")
    undo.add_argument("--list", action="store_true", help="List runs with backups and exit")

    return parser.parse_args(argv)


def _add_input_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-i",
        "--input",
        default=None,
        help="Diagnostics file, or '-' for stdin (default: run the diagnostics command)",
    )


def _emit(payload: dict[str, Any]) -> None:
    """Print a JSON report on stdout. Logs go to stderr."""
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")
    sys.stdout.flush()


def _resolve_config_path(args: argparse.Namespace) -> Path | None:
    if args.config is not None:
        return args.config
    candidate = args.project / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_file() else None


async def _read_diagnostics(
    args: argparse.Namespace, config: Any, project_root: Path
) -> bytes | str:
    if args.input == "-":
        return sys.stdin.buffer.read()
    if args.input:
        return Path(args.input).read_bytes()

    from error_resolver.adapters.diagnostics.command import CommandDiagnosticSource

    source = CommandDiagnosticSource.from_config(config.diagnostics, project_root)
    return await source.collect()


async def cmd_analyze(args: argparse.Namespace, config: Any, project_root: Path) -> int:
    from error_resolver.core.analyzer import DiagnosticAnalyzer
    from error_resolver.core.planner import RemediationPlanner

    raw = await _read_diagnostics(args, config, project_root)
    analyzer = DiagnosticAnalyzer(extra_codes=config.classification.codes)
    errors = analyzer.analyze(raw)
    phases = RemediationPlanner(config.planner).plan(errors)

    _emit(
        {
            "summary": analyzer.summarize(errors).to_dict(),
            "plan": [
                {
                    "name": p.name,
                    "root_cause": p.root_cause.value,
                    "priority": p.priority,
                    "errors": p.error_count,
                    "files": len(p.files),
                    "timeout": p.timeout,
                    "retries": p.retries,
                    "required": p.required,
                }
                for p in phases
            ],
        }
    )
    return 0


async def cmd_fix(args: argparse.Namespace, config: Any, project_root: Path) -> int:
    from error_resolver.core.pipeline import create_pipeline
    from error_resolver.utils.metrics import get_metrics

    overrides: dict[str, bool] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.no_backup:
        overrides["backup_enabled"] = False
    if args.no_validate:
        overrides["validation_enabled"] = False
    if args.no_rollback:
        overrides["rollback_on_failure"] = False
    if overrides:
        config = config.model_copy(update={"run": config.run.model_copy(update=overrides)})

    pipeline = create_pipeline(project_root, config, lock_timeout=args.lock_timeout)
    raw = await _read_diagnostics(args, config, project_root)
    summary = await pipeline.run(raw, run_id=args.run_id)

    report = summary.to_dict()
    if args.metrics:
        report["metrics"] = get_metrics().get_all_metrics()
    _emit(report)
    return summary.exit_code


async def cmd_validate(args: argparse.Namespace, config: Any, project_root: Path) -> int:
    from error_resolver.adapters.probes.command import checks_from_config
    from error_resolver.core.validation import ValidationEngine

    checks = checks_from_config(config.validation, project_root)
    engine = ValidationEngine()

    if args.quick:
        result = await engine.quick_compile_check(checks)
        if result is None:
            log.error("no_compile_check_configured")
            return 1
        _emit(
            {
                "name": result.check.name,
                "status": result.status.value,
                "message": result.message,
                "details": result.details,
            }
        )
        return 0 if result.success else 1

    summary = await engine.validate(checks)
    _emit(summary.to_dict())
    return 0 if summary.overall_success else 1


async def cmd_undo(args: argparse.Namespace, config: Any, project_root: Path) -> int:
    from error_resolver.core.backup import BackupStore
    from error_resolver.core.lock import RunLock
    from error_resolver.models.execution import RunState
    from error_resolver.utils.async_helpers import RollbackError

    store = BackupStore(project_root, config.backup.directory)
    runs = store.list_runs()

    if args.list:
        _emit({"runs": [{"run_id": r, "keys": store.list_keys(r)} for r in runs]})
        return 0

    run_id = args.run_id or (runs[0] if runs else None)
    if run_id is None:
        log.error("no_backups_found", directory=str(store.root))
        return 1

    async with RunLock(project_root, run_id=f"undo-{run_id}", directory=config.backup.directory):
        snapshot = store.load(run_id, args.key)
        try:
            restored = store.restore(snapshot)
        except RollbackError as e:
            log.error("undo_failed", run_id=run_id, error=str(e), paths=e.paths)
            return RunState.ROLLBACK_FAILED.exit_code

    _emit({"run_id": run_id, "key": args.key, "restored": [str(p) for p in restored]})
    return 0


COMMANDS = {
    "analyze": cmd_analyze,
    "fix": cmd_fix,
    "validate": cmd_validate,
    "undo": cmd_undo,
}


async def dispatch(args: argparse.Namespace) -> int:
    """Load configuration and dispatch the selected command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from error_resolver.utils.async_helpers import ResolverError

    project_root = args.project.resolve()
    config_path = _resolve_config_path(args)
    log.info(
        "starting_error_resolver",
        version=__version__,
        command=args.command,
        project=str(project_root),
        config_path=str(config_path) if config_path else None,
    )

    try:
        from error_resolver.config.loader import load_config

        config = load_config(config_path)

        from error_resolver.utils.logging import configure_logging

        configure_logging(
            level="DEBUG" if args.debug else config.logging.level,
            log_format=args.format if args.format != "console" else config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

        return await COMMANDS[args.command](args, config, project_root)

    except FileNotFoundError as e:
        log.error("file_not_found", error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except ResolverError as e:
        log.error("command_failed", command=args.command, error_type=type(e).__name__, error=str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_format=args.format)

    try:
        return asyncio.run(dispatch(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
