"""Per-project run lock: at most one active remediation run per project root."""

from __future__ import annotations

import asyncio
import fcntl
import os
import time
from pathlib import Path
from typing import IO, Any

import structlog

from error_resolver.core.backup import DEFAULT_BACKUP_DIR
from error_resolver.utils.async_helpers import RunLockedError
from error_resolver.utils.logging import LogEventNames

log = structlog.get_logger()

LOCK_NAME = ".run.lock"


class RunLock:
    """Exclusive advisory lock on ``<project>/<backup dir>/.run.lock``.

    The holder's pid and run id are written into the lock file so a
    blocked caller can report who holds it.

    Example:
        async with RunLock(project_root, run_id=run_id):
            await orchestrator.run(phases, context)
    """

    POLL_INTERVAL = 0.05

    def __init__(
        self,
        project_root: Path,
        run_id: str = "",
        directory: str = DEFAULT_BACKUP_DIR,
        timeout: float = 0.0,
    ) -> None:
        self._path = project_root / directory / LOCK_NAME
        self._run_id = run_id
        self._timeout = timeout
        self._fd: IO[str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_held(self) -> bool:
        return self._fd is not None

    async def acquire(self, timeout: float | None = None) -> None:
        """Take the lock, polling until ``timeout`` seconds have passed.

        Args:
            timeout: Seconds to keep trying. 0 tries exactly once. None
                uses the timeout given at construction.

        Raises:
            RunLockedError: If another run holds the lock past the timeout.
        """
        if self._fd is not None:
            return

        timeout = self._timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd = self._path.open("a+", encoding="utf-8")
        try:
            while True:
                try:
                    fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        holder = self._read_holder(fd)
                        log.warning(
                            LogEventNames.RUN_LOCK_BUSY, path=str(self._path), holder=holder
                        )
                        raise RunLockedError(
                            f"Another run holds {self._path}" + (f" ({holder})" if holder else "")
                        ) from None
                    await asyncio.sleep(self.POLL_INTERVAL)

            fd.seek(0)
            fd.truncate()
            fd.write(f"pid={os.getpid()} run_id={self._run_id}\n")
            fd.flush()
        except BaseException:
            fd.close()
            raise

        self._fd = fd
        log.debug(LogEventNames.RUN_LOCK_ACQUIRED, path=str(self._path))

    def release(self) -> None:
        """Release the lock. Safe to call when not held."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fd.seek(0)
            fd.truncate()
            fcntl.flock(fd.fileno(), fcntl.LOCK_UN)
        finally:
            fd.close()
        log.debug(LogEventNames.RUN_LOCK_RELEASED, path=str(self._path))

    async def __aenter__(self) -> RunLock:
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.release()

    @staticmethod
    def _read_holder(fd: IO[str]) -> str:
        try:
            fd.seek(0)
            return fd.read().strip()
        except OSError:
            return ""
