"""
Error taxonomy for docvault.

Every failure surfaced by the storage and backup layers is a subclass of
DocVaultError and carries a closed ErrorKind tag plus the offending path,
so callers can branch on the kind instead of parsing messages.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any


class ErrorKind(Enum):
    """Closed set of error kinds reported to callers."""

    IO_ERROR = "io_error"
    DIRECTORY_ERROR = "directory_error"
    NOT_FOUND = "not_found"
    ARCHIVE_FORMAT_ERROR = "archive_format_error"
    VALIDATION_ERROR = "validation_error"


class DocVaultError(Exception):
    """Base exception for all docvault errors."""

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a serializable dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "path": self.path,
        }


class StorageIOError(DocVaultError):
    """Raised when a file cannot be created, read, written, copied or deleted."""

    kind = ErrorKind.IO_ERROR


class DirectoryError(DocVaultError):
    """Raised when a storage root cannot be created or enumerated."""

    kind = ErrorKind.DIRECTORY_ERROR


class ArchiveNotFoundError(DocVaultError):
    """Raised when a referenced archive does not exist."""

    kind = ErrorKind.NOT_FOUND


class ArchiveFormatError(DocVaultError):
    """Raised when an archive is not a readable zip file."""

    kind = ErrorKind.ARCHIVE_FORMAT_ERROR


class ArchiveValidationError(DocVaultError):
    """Raised when input is well-formed but not acceptable."""

    kind = ErrorKind.VALIDATION_ERROR
