"""
Data models for backup archives.

Timestamps are timezone-aware local datetimes taken from the archive's
filesystem modification time, serialized as ISO 8601 / RFC 3339 strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any


@dataclass
class BackupInfo:
    """
    Catalog entry for one backup archive.

    Attributes:
        filename: Archive file name inside the backups root.
        size: Archive size in bytes.
        created_at: Modification time of the archive file.
    """

    filename: str
    size: int
    created_at: datetime

    @classmethod
    def from_path(cls, path: Path) -> BackupInfo:
        """Build an entry from an archive on disk."""
        stat = path.stat()
        return cls(
            filename=path.name,
            size=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_mtime).astimezone(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "filename": self.filename,
            "size": self.size,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupInfo:
        """Create from dictionary."""
        return cls(
            filename=data["filename"],
            size=int(data.get("size", 0)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class RestoreResult:
    """
    Result of a restore operation.

    Attributes:
        filename: Archive that was restored.
        files_restored: Number of documents written to the data root.
        safety_backup: Snapshot of the data taken just before the restore,
            usable to undo it.
    """

    filename: str
    files_restored: int
    safety_backup: BackupInfo

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "filename": self.filename,
            "files_restored": self.files_restored,
            "safety_backup": self.safety_backup.to_dict(),
        }
