"""
Document store for docvault.

Documents are opaque UTF-8 JSON text blobs identified by a string key and
persisted as one file per key directly under the data root:

    data/
        courses.json
        students.json
        ...

Design Decisions:
    - Content is never parsed; callers own the JSON shape
    - Loading a key that was never saved yields "[]" rather than an error
    - Writes are atomic (temp file + rename) so a crash never leaves a
      truncated document behind
    - Keys are validated so a document can never be written outside the
      data root
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from docvault.errors import ArchiveValidationError, StorageIOError
from docvault.storage.locks import ROOT_LOCKS, PathLockRegistry
from docvault.storage.roots import StorageRoots, ensure_dir

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".json"
DEFAULT_CONTENT = "[]"


def validate_key(key: str) -> str:
    """
    Check that a document key maps to a file directly inside the data root.

    Args:
        key: Document key.

    Returns:
        The key, unchanged.

    Raises:
        ArchiveValidationError: If the key is empty, hidden, or could escape
            the data root.
    """
    if not isinstance(key, str) or not key:
        raise ArchiveValidationError("Document key must be a non-empty string")
    if key.startswith("."):
        raise ArchiveValidationError(f"Document key may not start with a dot: {key!r}")
    if "/" in key or "\\" in key or ".." in key:
        raise ArchiveValidationError(f"Document key may not contain path components: {key!r}")
    if any(ord(ch) < 32 for ch in key):
        raise ArchiveValidationError(f"Document key may not contain control characters: {key!r}")
    return key


class DocumentStore:
    """
    Key-value store of JSON text documents.

    Example:
        roots = resolve_roots(Path("~/.docvault"))
        store = DocumentStore(roots)

        store.save("students", '[{"id": 1}]')
        store.load("students")   # '[{"id": 1}]'
        store.load("missing")    # '[]'

    Attributes:
        data_dir: Directory holding the document files.
    """

    def __init__(self, roots: StorageRoots, locks: PathLockRegistry | None = None) -> None:
        self.data_dir = roots.data_dir
        self._locks = locks or ROOT_LOCKS

    def path_for(self, key: str) -> Path:
        """Return the file path backing a document key."""
        return self.data_dir / f"{validate_key(key)}{DOCUMENT_SUFFIX}"

    def save(self, key: str, content: str) -> None:
        """
        Create or overwrite a document.

        Args:
            key: Document key.
            content: UTF-8 text to store verbatim.

        Raises:
            ArchiveValidationError: If the key is invalid or content is not text.
            StorageIOError: If the file cannot be written.
        """
        file_path = self.path_for(key)
        if not isinstance(content, str):
            raise ArchiveValidationError(f"Document content for {key!r} must be text")

        logger.info(f"Saving data for key: {key}")

        with self._locks.lock_for(self.data_dir):
            ensure_dir(self.data_dir)

            try:
                temp_fd, temp_path = tempfile.mkstemp(
                    prefix=f".{key}.",
                    suffix=".tmp",
                    dir=str(self.data_dir),
                )
            except OSError as e:
                logger.error(f"Failed to create temp file for key {key}: {e}")
                raise StorageIOError(f"Failed to save data: {e}", file_path) from e

            try:
                with os.fdopen(temp_fd, "w", encoding="utf-8", newline="") as f:
                    f.write(content)
                os.replace(temp_path, file_path)
            except OSError as e:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                logger.error(f"Failed to save data for key {key}: {e}")
                raise StorageIOError(f"Failed to save data: {e}", file_path) from e

        logger.info(f"Successfully saved data for key: {key} ({len(content.encode('utf-8'))} bytes)")

    def load(self, key: str) -> str:
        """
        Read a document.

        Args:
            key: Document key.

        Returns:
            The stored text, or "[]" if the document does not exist.

        Raises:
            ArchiveValidationError: If the key is invalid.
            StorageIOError: If the file exists but cannot be read as UTF-8.
        """
        file_path = self.path_for(key)
        logger.info(f"Loading data for key: {key}")

        with self._locks.lock_for(self.data_dir):
            ensure_dir(self.data_dir)

            if not file_path.exists():
                logger.warning(f"File does not exist for key: {key}, returning empty array")
                return DEFAULT_CONTENT

            try:
                with open(file_path, encoding="utf-8", newline="") as f:
                    content = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to load data for key {key}: {e}")
                raise StorageIOError(f"Failed to load data: {e}", file_path) from e

        logger.info(f"Successfully loaded data for key: {key} ({len(content.encode('utf-8'))} bytes)")
        return content

    def keys(self) -> list[str]:
        """
        List the keys of all stored documents.

        Returns:
            Sorted list of document keys.
        """
        with self._locks.lock_for(self.data_dir):
            ensure_dir(self.data_dir)
            try:
                return sorted(
                    entry.name[: -len(DOCUMENT_SUFFIX)]
                    for entry in self.data_dir.iterdir()
                    if entry.is_file()
                    and entry.name.endswith(DOCUMENT_SUFFIX)
                    and not entry.name.startswith(".")
                )
            except OSError as e:
                raise StorageIOError(f"Failed to read data directory: {e}", self.data_dir) from e
