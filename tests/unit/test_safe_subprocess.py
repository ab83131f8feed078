"""Tests for the safe subprocess wrapper."""

import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from error_resolver.utils.safe_subprocess import (
    CommandError,
    CommandNotFoundError,
    CommandResult,
    CommandTimeoutError,
    _validate_args,
    run_command,
)


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    proc = MagicMock(spec=subprocess.CompletedProcess)
    proc.returncode = returncode
    proc.stdout = stdout
    proc.stderr = stderr
    return proc


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success_true(self) -> None:
        """Test success property when return code is 0."""
        result = CommandResult(stdout="ok", stderr="", return_code=0, command=["tsc"])
        assert result.success is True

    def test_success_false(self) -> None:
        """Test success property when return code is non-zero."""
        result = CommandResult(stdout="", stderr="error", return_code=2, command=["tsc"])
        assert result.success is False

    def test_output_combines_streams(self) -> None:
        """Test that output joins whichever streams have text."""
        assert CommandResult("a", "b", 1, ["x"]).output == "a\nb"
        assert CommandResult("", "b", 1, ["x"]).output == "b"
        assert CommandResult("a", "", 0, ["x"]).output == "a"


class TestValidateArgs:
    """Tests for argument validation."""

    def test_accepts_argument_list(self) -> None:
        """Test that arguments are stringified."""
        args = ["npx", "tsc", Path("src")]
        assert _validate_args(args) == ["npx", "tsc", "src"]  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("args", "match"),
        [
            ("npx tsc --noEmit", "not a shell string"),
            ([], "must not be empty"),
            (["  "], "must not be empty"),
            (["tsc", "bad\x00arg"], "NUL"),
        ],
    )
    def test_rejects_bad_arguments(self, args: object, match: str) -> None:
        """Test each kind of rejected argument list."""
        with pytest.raises(CommandError, match=match):
            _validate_args(args)  # type: ignore[arg-type]


class TestRunCommand:
    """Tests for run_command."""

    async def test_success(self, tmp_path: Path) -> None:
        """Test a successful command."""
        with (
            patch("shutil.which", return_value="/usr/bin/npx"),
            patch("subprocess.run", return_value=completed(0, stdout="done")) as mock_run,
        ):
            result = await run_command(["npx", "tsc"], cwd=tmp_path, timeout=5)

        assert result.success
        assert result.stdout == "done"
        assert result.command == ["npx", "tsc"]
        assert result.duration >= 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["shell"] is False
        assert kwargs["cwd"] == tmp_path
        assert kwargs["timeout"] == 5

    async def test_missing_executable(self) -> None:
        """Test that a missing executable raises before running anything."""
        with (
            patch("shutil.which", return_value=None),
            patch("subprocess.run") as mock_run,
            pytest.raises(CommandNotFoundError, match="Executable not found: nope"),
        ):
            await run_command(["nope"])

        mock_run.assert_not_called()

    async def test_timeout(self) -> None:
        """Test that an expired command raises CommandTimeoutError."""
        with (
            patch("shutil.which", return_value="/usr/bin/npm"),
            patch("subprocess.run", side_effect=subprocess.TimeoutExpired("npm", 1)),
            pytest.raises(CommandTimeoutError, match="timed out after 1"),
        ):
            await run_command(["npm", "run", "build"], timeout=1)

    async def test_nonzero_exit_without_check(self) -> None:
        """Test that failures are returned when check is off."""
        with (
            patch("shutil.which", return_value="/usr/bin/npx"),
            patch("subprocess.run", return_value=completed(2, stdout="error TS1005")),
        ):
            result = await run_command(["npx", "tsc"])

        assert result.return_code == 2
        assert not result.success

    async def test_nonzero_exit_with_check(self) -> None:
        """Test that check=True turns failures into CommandError."""
        with (
            patch("shutil.which", return_value="/usr/bin/npx"),
            patch("subprocess.run", return_value=completed(1, stderr="lint failed")),
            pytest.raises(CommandError, match="exit code 1: lint failed"),
        ):
            await run_command(["npx", "eslint"], check=True)

    async def test_real_process(self, tmp_path: Path) -> None:
        """Test a real child process end to end."""
        result = await run_command(
            [sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path
        )

        assert result.success
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()
