"""Data model for file snapshots."""

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path


def content_digest(content: bytes | None) -> str | None:
    """Return the sha256 hex digest of file content, or None for a missing file."""
    if content is None:
        return None
    return hashlib.sha256(content).hexdigest()


@dataclass(frozen=True)
class BackupSnapshot:
    """Pre-mutation content of a set of files.

    A value of None in ``files`` means the file did not exist when the
    snapshot was taken; restoring removes it.
    """

    run_id: str
    key: str  # "run" or a phase key
    files: dict[Path, bytes | None]
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    location: Path | None = None  # On-disk backup directory, if persisted

    @property
    def paths(self) -> frozenset[Path]:
        return frozenset(self.files)

    @property
    def file_count(self) -> int:
        return len(self.files)

    def covers(self, paths: Iterable[Path]) -> bool:
        """Return True if every path has a snapshot entry."""
        return all(path in self.files for path in paths)

    def restrict(self, paths: Iterable[Path], key: str) -> "BackupSnapshot":
        """Return a snapshot view over a subset of this snapshot's files.

        Raises:
            KeyError: If a path was not captured by this snapshot.
        """
        subset = {path: self.files[path] for path in paths}
        return BackupSnapshot(
            run_id=self.run_id,
            key=key,
            files=subset,
            created_at=self.created_at,
            location=self.location,
        )

    def digests(self) -> dict[Path, str | None]:
        """Content digest per file."""
        return {path: content_digest(content) for path, content in self.files.items()}
