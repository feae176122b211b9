"""
Backup and restore functionality for docvault.

This module snapshots the data root into flat zip archives under the
backups root and manages their lifecycle: listing, restoring, importing
external archives, exporting copies, and deleting.

Usage:
    from docvault.backup import BackupManager

    manager = BackupManager(roots)
    info = manager.create_backup(label="Acme")
    backups = manager.list_backups()
    result = manager.restore_backup(info.filename)
"""

from docvault.backup.manager import (
    DEFAULT_BACKUP_WORD,
    DEFAULT_IMPORT_MARKER,
    DEFAULT_RECOGNIZED_KEYS,
    BackupManager,
    build_backup_stem,
    sanitize_label,
)
from docvault.backup.models import BackupInfo, RestoreResult
from docvault.backup.scheduler import AutoBackupScheduler, AutoBackupState

__all__ = [
    "BackupManager",
    "BackupInfo",
    "RestoreResult",
    "AutoBackupScheduler",
    "AutoBackupState",
    "build_backup_stem",
    "sanitize_label",
    "DEFAULT_BACKUP_WORD",
    "DEFAULT_IMPORT_MARKER",
    "DEFAULT_RECOGNIZED_KEYS",
]
