"""
Document storage for docvault.

Storage Structure:
    <base>/
        data/
            {key}.json          # one opaque JSON text document per key
        backups/
            *.zip               # backup archives (see docvault.backup)

Usage:
    from docvault.storage import DocumentStore, resolve_roots

    roots = resolve_roots(base_dir)
    store = DocumentStore(roots)
    store.save("students", "[]")
    content = store.load("students")
"""

from docvault.storage.document_store import (
    DEFAULT_CONTENT,
    DocumentStore,
    validate_key,
)
from docvault.storage.locks import ROOT_LOCKS, PathLockRegistry
from docvault.storage.roots import StorageRoots, ensure_dir, resolve_roots

__all__ = [
    "DocumentStore",
    "StorageRoots",
    "resolve_roots",
    "ensure_dir",
    "validate_key",
    "DEFAULT_CONTENT",
    "PathLockRegistry",
    "ROOT_LOCKS",
]
