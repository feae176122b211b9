"""
Interval-based automatic backups.

The scheduler does not run a thread of its own. Callers (an application
timer, a cron entry running `docvault auto-backup`) call run_if_due()
periodically; a backup is created when the configured interval has elapsed
since the last automatic backup.

State is kept in a small JSON file outside the data root so it is never
captured in, or overwritten by, a snapshot.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from docvault.backup.manager import BackupManager
from docvault.backup.models import BackupInfo

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "auto_backup.json"
DEFAULT_INTERVAL_HOURS = 24


def _aware(moment: datetime | None) -> datetime:
    """Return moment (or now) as a timezone-aware local datetime."""
    if moment is None:
        return datetime.now().astimezone()
    if moment.tzinfo is None:
        return moment.astimezone()
    return moment


@dataclass
class AutoBackupState:
    """
    Persisted auto-backup state.

    Attributes:
        last_backup: When the last automatic backup was created.
        last_filename: Name of that archive.
    """

    last_backup: datetime | None = None
    last_filename: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert state to dictionary."""
        return {
            "last_backup": self.last_backup.isoformat() if self.last_backup else None,
            "last_filename": self.last_filename,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutoBackupState:
        """Create state from dictionary."""
        last_backup = data.get("last_backup")
        return cls(
            last_backup=datetime.fromisoformat(last_backup) if last_backup else None,
            last_filename=data.get("last_filename"),
        )


class AutoBackupScheduler:
    """
    Creates a backup whenever the configured interval has elapsed.

    Usage:
        scheduler = AutoBackupScheduler(manager, base_dir / "auto_backup.json")
        info = scheduler.run_if_due()   # BackupInfo, or None if not due
    """

    def __init__(
        self,
        manager: BackupManager,
        state_file: Path,
        interval_hours: int = DEFAULT_INTERVAL_HOURS,
        enabled: bool = True,
    ) -> None:
        if interval_hours < 1:
            raise ValueError("interval_hours must be at least 1")
        self.manager = manager
        self.state_file = Path(state_file)
        self.interval = timedelta(hours=interval_hours)
        self.enabled = enabled

    def is_due(self, now: datetime | None = None) -> bool:
        """Return True if an automatic backup should be created now."""
        if not self.enabled:
            return False
        state = self._load_state()
        if state.last_backup is None:
            return True
        return _aware(now) - state.last_backup >= self.interval

    def next_run(self) -> datetime | None:
        """Time at which the next backup becomes due, or None if never run."""
        state = self._load_state()
        if state.last_backup is None:
            return None
        return state.last_backup + self.interval

    def run_if_due(self, now: datetime | None = None, label: str | None = None) -> BackupInfo | None:
        """
        Create a backup if one is due.

        Args:
            now: Current time (defaults to the local clock).
            label: Optional organization label for the archive name.

        Returns:
            BackupInfo of the new archive, or None if nothing was due.
        """
        now = _aware(now)
        if not self.is_due(now):
            logger.debug("Automatic backup not due")
            return None

        info = self.manager.create_backup(label)
        self._save_state(AutoBackupState(last_backup=now, last_filename=info.filename))
        logger.info(f"Automatic backup completed: {info.filename}")
        return info

    def _load_state(self) -> AutoBackupState:
        """Load state from disk."""
        if not self.state_file.exists():
            return AutoBackupState()

        try:
            with open(self.state_file, encoding="utf-8") as f:
                data = json.load(f)
            state = AutoBackupState.from_dict(data)
        except (json.JSONDecodeError, OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Could not load auto-backup state: %s", e)
            return AutoBackupState()

        if state.last_backup is not None and state.last_backup.tzinfo is None:
            state.last_backup = state.last_backup.astimezone()
        return state

    def _save_state(self, state: AutoBackupState) -> None:
        """Save state to disk."""
        self.state_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self.state_file, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2)
        except OSError as e:
            logger.error("Could not save auto-backup state: %s", e)
