"""
Request/response command interface for docvault.

An embedding application (desktop UI, another process) drives the core
through named commands with a dictionary of parameters, and receives a
dictionary back:

    {"ok": true, "result": ...}
    {"ok": false, "error": {"kind": "not_found", "message": "...", "path": "..."}}

Commands:
    - save:               key, content          -> null
    - load:               key                   -> content ("[]" if missing)
    - list_documents:                           -> [key, ...]
    - create_backup:      label?                -> BackupInfo
    - list_backups:                             -> [BackupInfo, ...] newest first
    - get_backup:         filename              -> BackupInfo
    - restore_backup:     filename              -> RestoreResult
    - import_backup:      source_path, label?   -> BackupInfo
    - export_backup_file: filename, dest_path   -> written path
    - delete_backup:      filename              -> null
    - auto_backup:        label?                -> BackupInfo or null

serve_stream() exposes the same commands as JSON lines over a pair of text
streams, one request per line.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, TextIO

from docvault.backup import AutoBackupScheduler, BackupManager
from docvault.backup.scheduler import STATE_FILE_NAME
from docvault.config.settings import Settings
from docvault.errors import ArchiveValidationError, DocVaultError
from docvault.storage import DocumentStore, StorageRoots

logger = logging.getLogger(__name__)


# Command handler type
CommandHandler = Callable[[dict[str, Any]], Any]


def _required(params: dict[str, Any], name: str) -> str:
    """Fetch a required string parameter."""
    value = params.get(name)
    if value is None:
        raise ArchiveValidationError(f"Missing required parameter: {name}")
    if not isinstance(value, str):
        raise ArchiveValidationError(
            f"Parameter {name} must be a string, got {type(value).__name__}"
        )
    return value


def _label(params: dict[str, Any], default: str) -> str | None:
    """Label parameter, falling back to the configured organization name."""
    if "label" not in params:
        return default or None
    label = params["label"]
    if label is not None and not isinstance(label, str):
        raise ArchiveValidationError(
            f"Parameter label must be a string, got {type(label).__name__}"
        )
    return label or None


class CommandDispatcher:
    """
    Routes named commands to the document store and backup manager.

    Attributes:
        roots: Storage roots every command operates on.
        settings: Loaded configuration.
        store: Document store over roots.data_dir.
        manager: Backup manager over both roots.
        scheduler: Automatic backup policy.
    """

    def __init__(self, roots: StorageRoots, settings: Settings | None = None) -> None:
        """Initialize dispatcher."""
        self.roots = roots
        self.settings = settings or Settings()
        self.store = DocumentStore(roots)
        self.manager = BackupManager.from_settings(roots, self.settings)
        self.scheduler = AutoBackupScheduler(
            self.manager,
            roots.base / STATE_FILE_NAME,
            interval_hours=self.settings.auto_backup.interval_hours,
            enabled=self.settings.auto_backup.enabled,
        )
        self._handlers: dict[str, CommandHandler] = {
            "save": self._save,
            "load": self._load,
            "list_documents": self._list_documents,
            "create_backup": self._create_backup,
            "list_backups": self._list_backups,
            "get_backup": self._get_backup,
            "restore_backup": self._restore_backup,
            "import_backup": self._import_backup,
            "export_backup_file": self._export_backup_file,
            "delete_backup": self._delete_backup,
            "auto_backup": self._auto_backup,
        }

    @property
    def commands(self) -> list[str]:
        """Names of all supported commands."""
        return sorted(self._handlers)

    def dispatch(self, command: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Run a command and wrap its outcome in a response dictionary.

        Args:
            command: Command name.
            params: Command parameters.

        Returns:
            Response dictionary with "ok" and either "result" or "error".
        """
        params = params or {}
        handler = self._handlers.get(command)

        try:
            if handler is None:
                raise ArchiveValidationError(f"Unknown command: {command}")
            if not isinstance(params, dict):
                raise ArchiveValidationError("Command parameters must be an object")
            result = handler(params)
        except DocVaultError as e:
            logger.warning(f"Command {command} failed: [{e.kind.value}] {e.message}")
            return {"ok": False, "error": e.to_dict()}

        return {"ok": True, "result": result}

    def _save(self, params: dict[str, Any]) -> None:
        self.store.save(_required(params, "key"), _required(params, "content"))

    def _load(self, params: dict[str, Any]) -> str:
        return self.store.load(_required(params, "key"))

    def _list_documents(self, params: dict[str, Any]) -> list[str]:
        return self.store.keys()

    def _create_backup(self, params: dict[str, Any]) -> dict[str, Any]:
        label = _label(params, self.settings.backup.organization)
        return self.manager.create_backup(label).to_dict()

    def _list_backups(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return [info.to_dict() for info in self.manager.list_backups()]

    def _get_backup(self, params: dict[str, Any]) -> dict[str, Any]:
        return self.manager.get_backup(_required(params, "filename")).to_dict()

    def _restore_backup(self, params: dict[str, Any]) -> dict[str, Any]:
        return self.manager.restore_backup(_required(params, "filename")).to_dict()

    def _import_backup(self, params: dict[str, Any]) -> dict[str, Any]:
        label = _label(params, self.settings.backup.organization)
        return self.manager.import_backup(_required(params, "source_path"), label).to_dict()

    def _export_backup_file(self, params: dict[str, Any]) -> str:
        dest = self.manager.export_backup(
            _required(params, "filename"),
            _required(params, "dest_path"),
        )
        return str(dest)

    def _delete_backup(self, params: dict[str, Any]) -> None:
        self.manager.delete_backup(_required(params, "filename"))

    def _auto_backup(self, params: dict[str, Any]) -> dict[str, Any] | None:
        label = _label(params, self.settings.backup.organization)
        info = self.scheduler.run_if_due(label=label)
        return info.to_dict() if info else None


def serve_stream(dispatcher: CommandDispatcher, in_stream: TextIO, out_stream: TextIO) -> int:
    """
    Answer JSON-line requests until end of input.

    Each request line is {"id": ..., "command": ..., "params": {...}}; each
    response line is the dispatch response with the request's "id" echoed.

    Returns:
        Number of requests handled.
    """
    handled = 0
    for line in in_stream:
        line = line.strip()
        if not line:
            continue

        request_id = None
        try:
            request = json.loads(line)
            if not isinstance(request, dict):
                raise ValueError("request must be a JSON object")
        except ValueError as e:
            response = {
                "ok": False,
                "error": ArchiveValidationError(f"Malformed request: {e}").to_dict(),
            }
        else:
            request_id = request.get("id")
            response = dispatcher.dispatch(str(request.get("command", "")), request.get("params"))

        response["id"] = request_id
        out_stream.write(json.dumps(response, ensure_ascii=False) + "\n")
        out_stream.flush()
        handled += 1

    logger.info(f"Command stream closed after {handled} requests")
    return handled
