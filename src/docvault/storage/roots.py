"""
Storage root resolution.

The application hands docvault a single base directory; everything the
core touches lives in two children of it:

    <base>/
        data/       # one <key>.json file per document
        backups/    # zip archives

The resolved StorageRoots value is built once by the caller and passed into
every store and manager explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from docvault.errors import DirectoryError

logger = logging.getLogger(__name__)

DATA_DIR_NAME = "data"
BACKUPS_DIR_NAME = "backups"


@dataclass(frozen=True)
class StorageRoots:
    """
    Resolved storage directories.

    Attributes:
        base: Application-provided base directory.
        data_dir: Directory holding the documents.
        backups_dir: Directory holding the backup archives.
    """

    base: Path
    data_dir: Path
    backups_dir: Path

    def ensure(self) -> StorageRoots:
        """Re-create both directories if they have gone missing."""
        ensure_dir(self.data_dir)
        ensure_dir(self.backups_dir)
        return self


def ensure_dir(path: Path) -> Path:
    """
    Create a directory (and parents) if it does not exist.

    Raises:
        DirectoryError: If the path cannot be created or is not a directory.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError as e:
        raise DirectoryError(f"Path exists and is not a directory: {path}", path) from e
    except OSError as e:
        logger.error(f"Failed to create directory {path}: {e}")
        raise DirectoryError(f"Failed to create directory: {e}", path) from e
    return path


def resolve_roots(base: Path | str) -> StorageRoots:
    """
    Compute and create the data and backups directories under base.

    Safe to call repeatedly.

    Args:
        base: Application base directory.

    Returns:
        StorageRoots with both directories present on disk.

    Raises:
        DirectoryError: If either directory cannot be created.
    """
    base = Path(base).expanduser()
    roots = StorageRoots(
        base=base,
        data_dir=base / DATA_DIR_NAME,
        backups_dir=base / BACKUPS_DIR_NAME,
    )
    roots.ensure()
    logger.debug(f"Storage roots ready: data={roots.data_dir} backups={roots.backups_dir}")
    return roots
