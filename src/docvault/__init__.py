"""
docvault - Local JSON document store with zip backup lifecycle

docvault persists named JSON documents for a single-machine application
and manages point-in-time backups of them as plain zip archives.

Key Features:
    - One opaque UTF-8 JSON file per document key, written atomically
    - Full snapshots of all documents into flat, deflate-compressed zips
    - Restore with a mandatory safety backup and staged directory swap
    - Import of external archives, validated by recognized document names
    - Export and deletion of archives
    - Interval-based automatic backups
    - Synchronous request/response command interface (Python or JSON lines)
"""

__version__ = "0.1.0"

from docvault.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
