"""
Backup and restore manager for docvault.

Provides functionality to snapshot the data root into zip archives, list
them, restore from them, and move archives in and out of the backups root.

Archives are flat zip files: every document in the data root is stored
under its bare file name using deflate compression, with no manifest and
no directory structure, so any zip tool can open them.

Restore Design:
    - A safety backup of the current data is always taken first; if that
      fails nothing is touched
    - The archive is extracted into a staging directory next to the data
      root and swapped in with directory renames, so a corrupt archive
      never leaves the data root half-cleared
    - The safety backup is returned to the caller so the restore can be
      undone by restoring it
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import uuid
import zipfile
import zlib
from collections.abc import Callable, Generator, Iterable
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from docvault.backup.models import BackupInfo, RestoreResult
from docvault.errors import (
    ArchiveFormatError,
    ArchiveNotFoundError,
    ArchiveValidationError,
    DirectoryError,
    StorageIOError,
)
from docvault.storage.locks import ROOT_LOCKS, PathLockRegistry
from docvault.storage.roots import StorageRoots, ensure_dir

if TYPE_CHECKING:
    from docvault.config.settings import Settings

logger = logging.getLogger(__name__)


ARCHIVE_SUFFIX = ".zip"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
DEFAULT_BACKUP_WORD = "backup"
DEFAULT_IMPORT_MARKER = "external"
DEFAULT_RECOGNIZED_KEYS = (
    "courses.json",
    "students.json",
    "enrollments.json",
)

STAGING_PREFIX = ".restore-"
RETIRED_PREFIX = ".retired-"

# zipfile signals unreadable archives with more than BadZipFile
_ARCHIVE_READ_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    EOFError,
    NotImplementedError,
    RuntimeError,
)

_UNSAFE_LABEL_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def sanitize_label(label: str | None) -> str:
    """
    Make an organization label safe to embed in a file name.

    Args:
        label: Free-form label, possibly None.

    Returns:
        The label with path separators and reserved characters replaced by
        underscores, or an empty string.
    """
    if not label:
        return ""
    return _UNSAFE_LABEL_CHARS.sub("_", label.strip())


def build_backup_stem(
    word: str,
    timestamp: str,
    label: str | None = None,
    marker: str | None = None,
) -> str:
    """
    Compose an archive name without its suffix.

    Examples:
        build_backup_stem("backup", "20240115_103000")
            -> "backup_20240115_103000"
        build_backup_stem("backup", "20240115_103000", "Acme", "external")
            -> "Acme_backup_external_20240115_103000"
    """
    parts = []
    label = sanitize_label(label)
    if label:
        parts.append(label)
    parts.append(word)
    if marker:
        parts.append(marker)
    parts.append(timestamp)
    return "_".join(parts)


def is_flat_name(name: str) -> bool:
    """Return True if name refers to a file directly inside a directory."""
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name and "\x00" not in name


def _bare_entry_name(name: str) -> str | None:
    """Strip any directory component from a zip entry name."""
    bare = name.replace("\\", "/").rsplit("/", 1)[-1]
    if not is_flat_name(bare):
        return None
    return bare


class BackupManager:
    """
    Manages the lifecycle of backup archives.

    Usage:
        roots = resolve_roots(base_dir)
        manager = BackupManager(roots)

        info = manager.create_backup(label="Acme")
        for backup in manager.list_backups():
            print(backup.filename, backup.size)

        result = manager.restore_backup(info.filename)
        manager.restore_backup(result.safety_backup.filename)  # undo

    Attributes:
        roots: Resolved data and backups directories.
        backup_word: Word embedded in every archive name.
        import_marker: Word marking archives admitted by import.
        recognized_keys: Entry names that make an external archive acceptable.
    """

    def __init__(
        self,
        roots: StorageRoots,
        backup_word: str = DEFAULT_BACKUP_WORD,
        import_marker: str = DEFAULT_IMPORT_MARKER,
        recognized_keys: Iterable[str] = DEFAULT_RECOGNIZED_KEYS,
        locks: PathLockRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize backup manager.

        Args:
            roots: Storage roots to operate on.
            backup_word: Word used in archive names.
            import_marker: Extra word used in names of imported archives.
            recognized_keys: Document file names accepted on import.
            locks: Lock registry; defaults to the process-wide one.
            clock: Source of the current time, used for archive names.
        """
        self.roots = roots
        self.backup_word = backup_word
        self.import_marker = import_marker
        self.recognized_keys = tuple(recognized_keys)
        self._locks = locks or ROOT_LOCKS
        self._clock = clock or datetime.now

    @classmethod
    def from_settings(cls, roots: StorageRoots, settings: Settings) -> BackupManager:
        """Create a manager configured from loaded settings."""
        return cls(
            roots,
            backup_word=settings.backup.word,
            import_marker=settings.backup.import_marker,
            recognized_keys=settings.backup.recognized_keys,
        )

    # -------------------------------------------------------------------------
    # Backup Builder
    # -------------------------------------------------------------------------

    def create_backup(self, label: str | None = None) -> BackupInfo:
        """
        Snapshot every document in the data root into a new archive.

        Args:
            label: Optional organization label prefixed to the file name.

        Returns:
            BackupInfo for the new archive.

        Raises:
            DirectoryError: If the data root cannot be enumerated.
            StorageIOError: If a document cannot be read or the archive
                cannot be written. The partial archive is removed.
        """
        logger.info(f"Creating backup (label={label!r})")
        with self._both_roots_locked():
            return self._create_backup_locked(label)

    def _create_backup_locked(self, label: str | None) -> BackupInfo:
        data_dir = ensure_dir(self.roots.data_dir)
        ensure_dir(self.roots.backups_dir)

        try:
            sources = sorted(
                path for path in data_dir.iterdir()
                if path.is_file() and not path.name.startswith(".")
            )
        except OSError as e:
            logger.error(f"Failed to read data directory {data_dir}: {e}")
            raise DirectoryError(f"Failed to read data directory: {e}", data_dir) from e

        timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
        stem = build_backup_stem(self.backup_word, timestamp, label)
        backup_path, handle = self._open_new_archive(stem)

        logger.info(f"Creating backup file: {backup_path}")
        try:
            with handle, zipfile.ZipFile(handle, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for source in sources:
                    logger.debug(f"Adding file to backup: {source.name}")
                    zf.write(source, arcname=source.name)
        except OSError as e:
            self._discard(backup_path)
            logger.error(f"Failed to write backup archive {backup_path}: {e}")
            raise StorageIOError(f"Failed to write backup archive: {e}", backup_path) from e
        except Exception:
            self._discard(backup_path)
            raise

        info = self._describe(backup_path)
        logger.info(
            f"Backup created successfully: {info.filename} "
            f"({info.size:,} bytes, {len(sources)} files)"
        )
        return info

    def _open_new_archive(self, stem: str) -> tuple[Path, BinaryIO]:
        """
        Exclusively create a new archive file, suffixing on collision.

        Two archives named in the same second get "_2", "_3", ... appended
        instead of overwriting each other.
        """
        counter = 1
        while True:
            suffix = "" if counter == 1 else f"_{counter}"
            path = self.roots.backups_dir / f"{stem}{suffix}{ARCHIVE_SUFFIX}"
            try:
                return path, open(path, "xb")
            except FileExistsError:
                counter += 1
            except OSError as e:
                logger.error(f"Failed to create backup file {path}: {e}")
                raise StorageIOError(f"Failed to create backup file: {e}", path) from e

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove partial archive {path}: {e}")

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    def list_backups(self) -> list[BackupInfo]:
        """
        List archives in the backups root, newest first.

        Only regular files with the exact ".zip" extension are included.

        Raises:
            DirectoryError: If the backups root cannot be enumerated.
            StorageIOError: If an archive's metadata cannot be read.
        """
        logger.info("Listing backups...")
        backups_dir = self.roots.backups_dir

        with self._locks.lock_for(backups_dir):
            ensure_dir(backups_dir)
            try:
                entries = list(backups_dir.iterdir())
            except OSError as e:
                logger.error(f"Failed to read backup directory {backups_dir}: {e}")
                raise DirectoryError(f"Failed to read backup directory: {e}", backups_dir) from e

            backups = []
            for path in entries:
                if path.suffix != ARCHIVE_SUFFIX or not path.is_file():
                    continue
                backups.append(self._describe(path))

        backups.sort(key=lambda b: (b.created_at, b.filename), reverse=True)
        logger.info(f"Found {len(backups)} backups")
        return backups

    def get_backup(self, filename: str) -> BackupInfo:
        """
        Get catalog information for a single archive.

        Raises:
            ArchiveNotFoundError: If the archive does not exist.
        """
        with self._locks.lock_for(self.roots.backups_dir):
            return self._describe(self._existing_archive(filename))

    def _describe(self, path: Path) -> BackupInfo:
        try:
            return BackupInfo.from_path(path)
        except OSError as e:
            raise StorageIOError(f"Failed to read backup metadata: {e}", path) from e

    def _existing_archive(self, filename: str) -> Path:
        """Resolve an archive name inside the backups root or raise NotFound."""
        if (
            not isinstance(filename, str)
            or not is_flat_name(filename)
            or not filename.endswith(ARCHIVE_SUFFIX)
        ):
            raise ArchiveNotFoundError(f"Backup file not found: {filename}")
        path = self.roots.backups_dir / filename
        if not path.is_file():
            logger.error(f"Backup file not found: {path}")
            raise ArchiveNotFoundError(f"Backup file not found: {filename}", path)
        return path

    # -------------------------------------------------------------------------
    # Restore Engine
    # -------------------------------------------------------------------------

    def restore_backup(self, filename: str) -> RestoreResult:
        """
        Replace the entire document set with the contents of an archive.

        Args:
            filename: Archive name in the backups root.

        Returns:
            RestoreResult including the safety backup taken beforehand.

        Raises:
            ArchiveNotFoundError: If the archive does not exist. Nothing is
                changed.
            ArchiveFormatError: If the archive is not a readable zip. The
                data root is left as it was.
            StorageIOError: If staging or swapping fails.
        """
        logger.info(f"Restoring backup: {filename}")

        with self._both_roots_locked():
            backup_path = self._existing_archive(filename)

            safety_backup = self._create_backup_locked(None)
            logger.info(f"Created safety backup: {safety_backup.filename}")

            staging = self._stage_archive(backup_path)
            try:
                files_restored = sum(1 for entry in staging.iterdir() if entry.is_file())
                self._swap_into_data_root(staging)
            finally:
                if staging.exists():
                    shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Backup restored successfully from: {filename} ({files_restored} files)")
        return RestoreResult(
            filename=filename,
            files_restored=files_restored,
            safety_backup=safety_backup,
        )

    def _stage_archive(self, backup_path: Path) -> Path:
        """Extract an archive, flattened, into a fresh staging directory."""
        try:
            staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=str(self.roots.base)))
        except OSError as e:
            raise StorageIOError(f"Failed to create staging directory: {e}", self.roots.base) from e

        try:
            self._extract_flat(backup_path, staging)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        return staging

    def _extract_flat(self, backup_path: Path, target_dir: Path) -> None:
        try:
            with zipfile.ZipFile(backup_path) as zf:
                for member in zf.infolist():
                    if member.is_dir():
                        continue
                    name = _bare_entry_name(member.filename)
                    if name is None:
                        logger.warning(f"Skipping archive entry with unusable name: {member.filename!r}")
                        continue

                    logger.info(f"Extracting: {name}")
                    with zf.open(member) as src, open(target_dir / name, "wb") as dst:
                        shutil.copyfileobj(src, dst)
        except _ARCHIVE_READ_ERRORS as e:
            logger.error(f"Failed to read zip archive {backup_path}: {e}")
            raise ArchiveFormatError(f"Failed to read zip archive: {e}", backup_path) from e
        except OSError as e:
            logger.error(f"Failed to extract {backup_path}: {e}")
            raise StorageIOError(f"Failed to extract backup: {e}", backup_path) from e

    def _swap_into_data_root(self, staging: Path) -> None:
        """
        Put the staged documents in place of the live data root.

        Regular files of the old data root are dropped; anything else in it
        (sub-directories) is carried over into the new one.
        """
        data_dir = self.roots.data_dir
        retired: Path | None = self.roots.base / f"{RETIRED_PREFIX}{uuid.uuid4().hex}"

        # mkdtemp creates 0700; keep the live root's mode
        try:
            shutil.copymode(data_dir, staging)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not copy permissions of {data_dir}: {e}")

        try:
            os.rename(data_dir, retired)
        except FileNotFoundError:
            retired = None
        except OSError as e:
            raise StorageIOError(f"Failed to move data directory aside: {e}", data_dir) from e

        try:
            os.rename(staging, data_dir)
        except OSError as e:
            logger.error(f"Failed to move restored data into place: {e}")
            if retired is not None:
                try:
                    os.rename(retired, data_dir)
                except OSError as rollback_error:
                    logger.critical(
                        f"Could not put previous data back ({rollback_error}); "
                        f"it is preserved at {retired}"
                    )
                    raise StorageIOError(
                        f"Failed to move restored data into place: {e}; "
                        f"previous data preserved at {retired}",
                        retired,
                    ) from e
            raise StorageIOError(f"Failed to move restored data into place: {e}", data_dir) from e

        if retired is None:
            return

        kept = False
        for entry in retired.iterdir():
            if entry.is_file():
                continue
            target = data_dir / entry.name
            if target.exists():
                logger.warning(f"Not carrying over {entry.name}: restored archive has an entry of that name")
                kept = True
                continue
            try:
                os.rename(entry, target)
            except OSError as e:
                logger.warning(f"Could not carry over {entry}: {e}")
                kept = True

        if kept:
            logger.warning(f"Previous data directory kept at {retired}")
        else:
            shutil.rmtree(retired, ignore_errors=True)

    # -------------------------------------------------------------------------
    # Import / Export / Delete
    # -------------------------------------------------------------------------

    def import_backup(self, source_path: Path | str, label: str | None = None) -> BackupInfo:
        """
        Admit an externally supplied archive into the catalog.

        The archive must be a zip whose top-level entries include at least
        one recognized document name. It is copied verbatim.

        Args:
            source_path: Path of the archive to import.
            label: Optional organization label prefixed to the new name.

        Returns:
            BackupInfo for the copy in the backups root.

        Raises:
            ArchiveNotFoundError: If source_path does not exist.
            ArchiveFormatError: If it is not a valid zip file.
            ArchiveValidationError: If no recognized document is present.
            StorageIOError: If the copy fails.
        """
        source = Path(source_path).expanduser()
        logger.info(f"Importing backup from: {source} (label={label!r})")

        if not source.is_file():
            logger.error(f"Import source not found: {source}")
            raise ArchiveNotFoundError(f"Import source not found: {source}", source)

        try:
            with zipfile.ZipFile(source) as zf:
                names = zf.namelist()
        except _ARCHIVE_READ_ERRORS as e:
            logger.error(f"Not a valid zip archive: {source}: {e}")
            raise ArchiveFormatError(f"Not a valid backup archive (zip): {e}", source) from e
        except OSError as e:
            raise StorageIOError(f"Failed to open import source: {e}", source) from e

        matched = sorted(set(names) & set(self.recognized_keys))
        if not matched:
            logger.error(f"Import rejected, no recognized documents in {source}")
            raise ArchiveValidationError(
                f"Not a valid backup file: expected at least one of "
                f"{', '.join(self.recognized_keys)}",
                source,
            )
        logger.debug(f"Recognized documents in import: {', '.join(matched)}")

        with self._locks.lock_for(self.roots.backups_dir):
            ensure_dir(self.roots.backups_dir)
            timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
            stem = build_backup_stem(self.backup_word, timestamp, label, self.import_marker)
            dest_path, handle = self._open_new_archive(stem)
            try:
                with handle, open(source, "rb") as src:
                    shutil.copyfileobj(src, handle)
            except OSError as e:
                self._discard(dest_path)
                logger.error(f"Failed to copy import source {source}: {e}")
                raise StorageIOError(f"Failed to copy backup file: {e}", dest_path) from e

            info = self._describe(dest_path)

        logger.info(
            f"Backup imported successfully: {info.filename} "
            f"({info.size:,} bytes, {len(names)} entries)"
        )
        return info

    def export_backup(self, filename: str, dest_path: Path | str) -> Path:
        """
        Copy an archive verbatim to an arbitrary location.

        Args:
            filename: Archive name in the backups root.
            dest_path: Destination file, or a directory to copy into.

        Returns:
            Path of the written copy.

        Raises:
            ArchiveNotFoundError: If the archive does not exist.
            StorageIOError: If the destination cannot be written.
        """
        logger.info(f"Exporting backup file: {filename} to {dest_path}")

        with self._locks.lock_for(self.roots.backups_dir):
            backup_path = self._existing_archive(filename)
            dest = Path(dest_path).expanduser()
            if dest.is_dir():
                dest = dest / backup_path.name
            try:
                shutil.copyfile(backup_path, dest)
            except OSError as e:
                logger.error(f"Failed to export backup file {filename}: {e}")
                raise StorageIOError(f"Failed to export backup file: {e}", dest) from e

        logger.info(f"Backup file exported successfully: {filename} -> {dest}")
        return dest

    def delete_backup(self, filename: str) -> None:
        """
        Remove an archive from the backups root.

        Raises:
            ArchiveNotFoundError: If the archive does not exist.
            StorageIOError: If the file cannot be removed.
        """
        logger.info(f"Deleting backup: {filename}")

        with self._locks.lock_for(self.roots.backups_dir):
            backup_path = self._existing_archive(filename)
            try:
                backup_path.unlink()
            except OSError as e:
                logger.error(f"Failed to delete backup file {backup_path}: {e}")
                raise StorageIOError(f"Failed to delete backup file: {e}", backup_path) from e

        logger.info(f"Backup deleted successfully: {filename}")

    @contextmanager
    def _both_roots_locked(self) -> Generator[None, None, None]:
        """Hold the data-root lock, then the backups-root lock."""
        with self._locks.lock_for(self.roots.data_dir), self._locks.lock_for(self.roots.backups_dir):
            yield
