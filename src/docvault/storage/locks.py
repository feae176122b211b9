"""
Per-root locking for docvault.

Every store and manager serializes work on a storage root through a lock
obtained here. Paths are resolved before lookup, so two spellings of the
same directory share one lock. Locks are re-entrant: restore holds both
root locks while it takes its safety backup through the same code path as
create_backup.

Locking is in-process only; separate processes sharing a base directory
are not coordinated.
"""

from __future__ import annotations

import threading
from pathlib import Path


class PathLockRegistry:
    """
    Provides a stable re-entrant lock per normalized directory path.

    The data root and the backups root each get their own lock so that a
    backup enumeration never interleaves with a restore or a delete running
    on another thread of the same process.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, path: Path) -> threading.RLock:
        key = str(Path(path).resolve())
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


ROOT_LOCKS = PathLockRegistry()
