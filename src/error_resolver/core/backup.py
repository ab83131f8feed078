"""Phase-scoped file snapshots with verified restore.

Layout on disk::

    <project>/.error-fix-backups/<run_id>/<key>/
        0000-src__app.tsx
        0001-src__components__Button.tsx
        manifest.json

The manifest records, per file, the original path, the backup file name,
the sha256 of the content and whether the file existed at all.
"""

from __future__ import annotations

import json
import os
import re
import secrets
import shutil
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from error_resolver.models.backup import BackupSnapshot, content_digest
from error_resolver.utils.async_helpers import BackupError, RollbackError
from error_resolver.utils.logging import LogEventNames

log = structlog.get_logger()

DEFAULT_BACKUP_DIR = ".error-fix-backups"
MANIFEST_NAME = "manifest.json"
RUN_KEY = "run"

# Run ids and keys become directory names
SAFE_COMPONENT = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def new_run_id() -> str:
    """Generate a sortable, collision-resistant run id."""
    return f"{datetime.now(UTC).strftime('%Y%m%dT%H%M%SZ')}-{secrets.token_hex(3)}"


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write ``content`` to ``path`` through a temp file and ``os.replace``.

    File permissions of an existing target are preserved.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
    try:
        with tmp.open("wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            shutil.copymode(path, tmp)
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


class BackupStore:
    """Snapshot and restore project files for a remediation run.

    At most one snapshot exists per (run_id, key). Snapshots taken with
    ``snapshot`` are persisted under the project's backup directory;
    ``record`` registers an in-memory view (for example the run-level
    snapshot restricted to one phase) without touching disk.

    Example:
        store = BackupStore(project_root)
        snap = store.snapshot(run_id, "syntax", phase_files)
        ...
        store.restore(snap)
    """

    def __init__(self, project_root: Path, directory: str = DEFAULT_BACKUP_DIR) -> None:
        self._project_root = project_root.resolve()
        self._root = self._project_root / directory
        self._snapshots: dict[tuple[str, str], BackupSnapshot] = {}

    @property
    def root(self) -> Path:
        """Directory holding every run's backups."""
        return self._root

    @property
    def project_root(self) -> Path:
        return self._project_root

    def resolve(self, path: Path | str) -> Path:
        """Resolve a (possibly project-relative) path to an absolute one."""
        path = Path(path)
        if not path.is_absolute():
            path = self._project_root / path
        return path.resolve()

    def get(self, run_id: str, key: str) -> BackupSnapshot | None:
        """Return the snapshot registered for (run_id, key), if any."""
        return self._snapshots.get((run_id, key))

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def snapshot(self, run_id: str, key: str, files: Iterable[Path | str]) -> BackupSnapshot:
        """Capture the current content of ``files`` and persist it.

        Args:
            run_id: Identifier of the run
            key: "run" or a phase key
            files: Files to capture; relative paths resolve against the project

        Returns:
            The persisted snapshot

        Raises:
            BackupError: On a duplicate (run_id, key), an unreadable file,
                or a failed write
        """
        self._check_component("run id", run_id)
        self._check_component("key", key)
        if (run_id, key) in self._snapshots:
            raise BackupError(f"Snapshot already exists for run {run_id} key {key}")

        location = self._root / run_id / key
        if location.exists():
            raise BackupError(f"Backup directory already exists: {location}")

        paths = sorted({self.resolve(f) for f in files})
        contents: dict[Path, bytes | None] = {}
        for path in paths:
            contents[path] = self._read(path)

        created_at = datetime.now(UTC)
        try:
            location.mkdir(parents=True, exist_ok=False)
            entries = []
            for index, (path, content) in enumerate(contents.items()):
                backup_name = self._backup_name(index, path)
                if content is not None:
                    atomic_write_bytes(location / backup_name, content)
                entries.append(
                    {
                        "path": self._display_path(path),
                        "backup": backup_name if content is not None else None,
                        "sha256": content_digest(content),
                        "existed": content is not None,
                        "created_at": created_at.isoformat(),
                    }
                )
            manifest = {"run_id": run_id, "key": key, "files": entries}
            atomic_write_bytes(
                location / MANIFEST_NAME, json.dumps(manifest, indent=2).encode("utf-8")
            )
        except OSError as e:
            log.error(LogEventNames.SNAPSHOT_FAILED, key=key, location=str(location), error=str(e))
            shutil.rmtree(location, ignore_errors=True)
            raise BackupError(f"Failed to write backup to {location}: {e}") from e

        snapshot = BackupSnapshot(
            run_id=run_id,
            key=key,
            files=contents,
            created_at=created_at,
            location=location,
        )
        self._snapshots[(run_id, key)] = snapshot

        log.info(
            LogEventNames.SNAPSHOT_CREATED,
            key=key,
            files=snapshot.file_count,
            location=str(location),
        )
        return snapshot

    def record(self, snapshot: BackupSnapshot) -> BackupSnapshot:
        """Register an existing (usually restricted) snapshot without disk I/O.

        Raises:
            BackupError: If (run_id, key) is already registered
        """
        ident = (snapshot.run_id, snapshot.key)
        if ident in self._snapshots:
            raise BackupError(
                f"Snapshot already exists for run {snapshot.run_id} key {snapshot.key}"
            )
        self._snapshots[ident] = snapshot
        log.debug(LogEventNames.SNAPSHOT_REUSED, key=snapshot.key, files=snapshot.file_count)
        return snapshot

    def discard(self, run_id: str) -> int:
        """Drop the in-memory snapshots of a finished run.

        Persisted backups stay on disk and remain available through ``load``.

        Returns:
            Number of snapshots dropped
        """
        idents = [ident for ident in self._snapshots if ident[0] == run_id]
        for ident in idents:
            del self._snapshots[ident]
        return len(idents)

    def held_runs(self) -> set[str]:
        """Run ids that still have snapshots held in memory."""
        return {run_id for run_id, _ in self._snapshots}

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def restore(self, snapshot: BackupSnapshot) -> list[Path]:
        """Restore every file in ``snapshot`` and verify it by content hash.

        Files that did not exist at snapshot time are removed. Every file is
        attempted even if an earlier one fails.

        Args:
            snapshot: Snapshot to restore

        Returns:
            The restored paths

        Raises:
            RollbackError: If any file could not be written or doesn't
                verify afterwards
        """
        log.info(LogEventNames.ROLLBACK_STARTED, key=snapshot.key, files=snapshot.file_count)

        failed: list[str] = []
        for path, content in snapshot.files.items():
            try:
                if content is None:
                    path.unlink(missing_ok=True)
                else:
                    atomic_write_bytes(path, content)
            except OSError as e:
                log.error(LogEventNames.ROLLBACK_FAILED, path=str(path), error=str(e))
                failed.append(str(path))

        for path, expected in snapshot.digests().items():
            if str(path) in failed:
                continue
            actual = content_digest(path.read_bytes()) if path.is_file() else None
            if actual != expected:
                log.error(
                    LogEventNames.ROLLBACK_FAILED,
                    path=str(path),
                    reason="hash_mismatch",
                )
                failed.append(str(path))

        if failed:
            raise RollbackError(
                f"Failed to restore {len(failed)} of {snapshot.file_count} files", paths=failed
            )

        log.info(LogEventNames.ROLLBACK_COMPLETE, key=snapshot.key, files=snapshot.file_count)
        return list(snapshot.files)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self, run_id: str, key: str = RUN_KEY) -> BackupSnapshot:
        """Rebuild a snapshot from its on-disk manifest.

        Raises:
            BackupError: If the manifest is missing or a backup file is
                missing or corrupt
        """
        self._check_component("run id", run_id)
        self._check_component("key", key)
        location = self._root / run_id / key
        manifest_path = location / MANIFEST_NAME
        try:
            manifest: dict[str, Any] = json.loads(manifest_path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise BackupError(f"No backup found for run {run_id} key {key}") from e
        except (OSError, ValueError) as e:
            raise BackupError(f"Unreadable manifest {manifest_path}: {e}") from e

        files: dict[Path, bytes | None] = {}
        created_at = datetime.now(UTC)
        for entry in manifest.get("files", []):
            path = self.resolve(entry["path"])
            created_at = datetime.fromisoformat(entry["created_at"])
            if not entry["existed"]:
                files[path] = None
                continue
            try:
                content = (location / entry["backup"]).read_bytes()
            except OSError as e:
                raise BackupError(f"Missing backup file for {entry['path']}: {e}") from e
            if content_digest(content) != entry["sha256"]:
                raise BackupError(f"Backup file for {entry['path']} is corrupt")
            files[path] = content

        return BackupSnapshot(
            run_id=run_id,
            key=key,
            files=files,
            created_at=created_at,
            location=location,
        )

    def list_runs(self) -> list[str]:
        """Run ids with backups on disk, newest first."""
        if not self._root.is_dir():
            return []
        runs = [d for d in self._root.iterdir() if d.is_dir() and not d.name.startswith(".")]
        runs.sort(key=lambda d: (d.stat().st_mtime, d.name), reverse=True)
        return [d.name for d in runs]

    def list_keys(self, run_id: str) -> list[str]:
        """Snapshot keys persisted for a run."""
        run_dir = self._root / run_id
        if not run_dir.is_dir():
            return []
        return sorted(d.name for d in run_dir.iterdir() if (d / MANIFEST_NAME).is_file())

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _read(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            log.error(LogEventNames.SNAPSHOT_FAILED, path=str(path), error=str(e))
            raise BackupError(f"Cannot read {path}: {e}") from e

    def _display_path(self, path: Path) -> str:
        try:
            return path.relative_to(self._project_root).as_posix()
        except ValueError:
            return str(path)

    def _backup_name(self, index: int, path: Path) -> str:
        flat = self._display_path(path).replace("/", "__").replace("\\", "__").lstrip("_")
        return f"{index:04d}-{flat}"

    @staticmethod
    def _check_component(label: str, value: str) -> None:
        if not SAFE_COMPONENT.match(value):
            raise BackupError(f"Invalid backup {label}: {value!r}")
