"""
Command-line interface for docvault.

Provides commands for document persistence and the backup lifecycle:
saving and loading documents, creating, listing, restoring, importing,
exporting and deleting backup archives, and serving the command interface
over stdin/stdout for an embedding application.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, NoReturn

from docvault import __version__
from docvault.commands import CommandDispatcher, serve_stream
from docvault.config.settings import (
    ConfigurationError,
    Settings,
    get_config_path,
    load_config,
    save_config,
)
from docvault.errors import DocVaultError
from docvault.storage import resolve_roots

# Set up logging
logger = logging.getLogger(__name__)

LOG_DIR_NAME = "logs"
LOG_FILE_NAME = "docvault.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Global verbosity settings (set during main() based on args)
_quiet_mode = False
_verbose_level = 0


def set_output_mode(quiet: bool = False, verbose: int = 0) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
        verbose: Verbosity level (0=normal, 1+=verbose).
    """
    global _quiet_mode, _verbose_level
    _quiet_mode = quiet
    _verbose_level = verbose


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output like JSON/CSV).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def format_as_csv(headers: list[str], rows: list[list[Any]]) -> str:
    """
    Format data as CSV string.

    Args:
        headers: Column headers.
        rows: List of row data (each row is a list of values).

    Returns:
        CSV formatted string.
    """
    import csv
    import io

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue()


def format_size(size: int) -> str:
    """Human-readable byte count."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1024 / 1024:.2f} MB"


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for docvault CLI."""
    parser = argparse.ArgumentParser(
        prog="docvault",
        description="Local JSON document store with zip backup lifecycle",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"docvault {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.docvault/config.yaml)",
    )

    parser.add_argument(
        "--base-dir",
        metavar="PATH",
        dest="base_dir",
        help="Override the storage base directory",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show storage paths and statistics",
        description="Display version, storage paths, document and backup counts.",
    )
    info_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    info_parser.set_defaults(func=cmd_info)

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Write a default config file and create storage directories",
    )
    init_parser.set_defaults(func=cmd_init)

    # save command
    save_parser = subparsers.add_parser(
        "save",
        help="Save a document",
        description="Create or overwrite a document. Content is read from --content, --file, or stdin.",
    )
    save_parser.add_argument("key", metavar="KEY", help="Document key")
    source_group = save_parser.add_mutually_exclusive_group()
    source_group.add_argument(
        "--content",
        metavar="TEXT",
        help="Document content",
    )
    source_group.add_argument(
        "--file",
        metavar="PATH",
        help="Read document content from a file",
    )
    save_parser.set_defaults(func=cmd_save)

    # load command
    load_parser = subparsers.add_parser(
        "load",
        help="Print a document",
        description="Print a document's content ([] if it does not exist).",
    )
    load_parser.add_argument("key", metavar="KEY", help="Document key")
    load_parser.set_defaults(func=cmd_load)

    # documents command
    documents_parser = subparsers.add_parser(
        "documents",
        help="List stored document keys",
    )
    documents_parser.set_defaults(func=cmd_documents)

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Create a backup archive",
        description="Snapshot all documents into a new zip archive in the backups directory.",
    )
    backup_parser.add_argument(
        "--label",
        metavar="NAME",
        help="Organization label for the file name (default: backup.organization from config)",
    )
    backup_parser.set_defaults(func=cmd_backup)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List backup archives, newest first",
    )
    list_parser.add_argument(
        "--format",
        choices=["table", "json", "csv"],
        default="table",
        help="Output format (default: table)",
    )
    list_parser.set_defaults(func=cmd_list)

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        help="Restore documents from a backup archive",
        description="Replace all documents with the archive contents. A safety backup is taken first.",
    )
    restore_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Archive file name in the backups directory",
    )
    restore_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompt",
    )
    restore_parser.set_defaults(func=cmd_restore)

    # import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import an external backup archive",
        description="Validate an external zip archive and copy it into the backups directory.",
    )
    import_parser.add_argument(
        "source",
        metavar="PATH",
        help="Path to the archive to import",
    )
    import_parser.add_argument(
        "--label",
        metavar="NAME",
        help="Organization label for the file name (default: backup.organization from config)",
    )
    import_parser.set_defaults(func=cmd_import)

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Copy a backup archive to another location",
    )
    export_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Archive file name in the backups directory",
    )
    export_parser.add_argument(
        "dest",
        metavar="DEST",
        help="Destination file or directory",
    )
    export_parser.set_defaults(func=cmd_export)

    # delete command
    delete_parser = subparsers.add_parser(
        "delete",
        help="Delete a backup archive",
    )
    delete_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Archive file name in the backups directory",
    )
    delete_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompt",
    )
    delete_parser.set_defaults(func=cmd_delete)

    # auto-backup command
    auto_parser = subparsers.add_parser(
        "auto-backup",
        help="Create a backup if the automatic backup interval has elapsed",
        description="Intended to be run periodically, e.g. hourly from cron.",
    )
    auto_parser.add_argument(
        "--label",
        metavar="NAME",
        help="Organization label for the file name (default: backup.organization from config)",
    )
    auto_parser.set_defaults(func=cmd_auto_backup)

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the command interface as JSON lines on stdin/stdout",
    )
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def setup_logging(
    verbose: int,
    quiet: bool,
    log_file: Path | None = None,
    max_bytes: int = 50_000,
    backup_count: int = 3,
    file_level: str = "INFO",
) -> None:
    """
    Configure logging based on verbosity level.

    Console output goes to stderr. When log_file is given, records are also
    written to a size-capped rotating log file.
    """
    if quiet:
        level = logging.ERROR
    elif verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]
    root_level = level

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            output_error(f"Warning: cannot open log file {log_file}: {e}")
        else:
            numeric_file_level = logging.getLevelName(file_level)
            file_handler.setLevel(numeric_file_level)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
            root_level = min(level, numeric_file_level)

    logging.basicConfig(level=root_level, handlers=handlers, force=True)


def _resolve_settings(args: argparse.Namespace) -> Settings:
    """Load configuration and apply command-line overrides."""
    config_path = Path(args.config) if args.config else None
    settings = load_config(config_path)
    if getattr(args, "base_dir", None):
        settings.base_dir = args.base_dir
    return settings


def _open_dispatcher(args: argparse.Namespace) -> CommandDispatcher:
    """Resolve storage roots and build the command dispatcher."""
    settings = _resolve_settings(args)
    roots = resolve_roots(settings.base_path)
    return CommandDispatcher(roots, settings)


def _label_arg(args: argparse.Namespace, settings: Settings) -> str | None:
    label = getattr(args, "label", None)
    if label is None:
        label = settings.backup.organization
    return label or None


def _confirm(prompt: str) -> bool:
    response = input(f"{prompt} [y/N]: ").strip().lower()
    return response in ("y", "yes")


def cmd_info(args: argparse.Namespace) -> int:
    """Show storage paths and statistics."""
    dispatcher = _open_dispatcher(args)
    settings = dispatcher.settings
    backups = dispatcher.manager.list_backups()
    next_run = dispatcher.scheduler.next_run()

    info: dict[str, Any] = {
        "version": __version__,
        "config_file": str(Path(args.config) if args.config else get_config_path()),
        "base_dir": str(dispatcher.roots.base),
        "data_dir": str(dispatcher.roots.data_dir),
        "backups_dir": str(dispatcher.roots.backups_dir),
        "documents": dispatcher.store.keys(),
        "backup_count": len(backups),
        "backup_bytes": sum(b.size for b in backups),
        "latest_backup": backups[0].to_dict() if backups else None,
        "auto_backup": {
            "enabled": settings.auto_backup.enabled,
            "interval_hours": settings.auto_backup.interval_hours,
            "next_run": next_run.isoformat() if next_run else None,
        },
    }

    if args.json:
        output(json.dumps(info, indent=2, default=str), force=True)
        return 0

    output("docvault Information")
    output("=" * 50)
    output()
    output(f"Version: {info['version']}")
    output()
    output("Paths:")
    output(f"  Config file: {info['config_file']}")
    output(f"  Data directory: {info['data_dir']}")
    output(f"  Backups directory: {info['backups_dir']}")
    output()
    output("Storage:")
    output(f"  Documents: {len(info['documents'])}")
    for key in info["documents"]:
        output(f"    - {key}")
    output(f"  Backups: {info['backup_count']} ({format_size(info['backup_bytes'])})")
    if info["latest_backup"]:
        output(f"  Latest backup: {info['latest_backup']['filename']}")
    output()
    output("Automatic backups:")
    output(f"  Enabled: {'Yes' if settings.auto_backup.enabled else 'No'}")
    output(f"  Interval: {settings.auto_backup.interval_hours} hours")
    if next_run:
        output(f"  Next run: {next_run.strftime('%Y-%m-%d %H:%M:%S')}")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    """Write a default config file and create storage directories."""
    config_path = Path(args.config) if args.config else get_config_path()
    settings = _resolve_settings(args)

    if config_path.exists():
        output(f"Config file already exists: {config_path}")
    else:
        save_config(settings, config_path)
        output(f"Created config file: {config_path}")

    roots = resolve_roots(settings.base_path)
    output(f"Data directory: {roots.data_dir}")
    output(f"Backups directory: {roots.backups_dir}")
    return 0


def cmd_save(args: argparse.Namespace) -> int:
    """Save a document."""
    if args.content is not None:
        content = args.content
    elif args.file:
        try:
            content = Path(args.file).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            output_error(f"Cannot read {args.file}: {e}")
            return 1
    else:
        content = sys.stdin.read()

    dispatcher = _open_dispatcher(args)
    dispatcher.store.save(args.key, content)
    output(f"Saved {args.key} ({len(content.encode('utf-8'))} bytes)")
    return 0


def cmd_load(args: argparse.Namespace) -> int:
    """Print a document."""
    dispatcher = _open_dispatcher(args)
    output(dispatcher.store.load(args.key), force=True)
    return 0


def cmd_documents(args: argparse.Namespace) -> int:
    """List stored document keys."""
    dispatcher = _open_dispatcher(args)
    for key in dispatcher.store.keys():
        output(key, force=True)
    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    """Create a backup archive."""
    dispatcher = _open_dispatcher(args)
    label = _label_arg(args, dispatcher.settings)

    output("Creating backup...")
    info = dispatcher.manager.create_backup(label)

    output()
    output("Backup created successfully!")
    output()
    output(f"  File: {info.filename}")
    output(f"  Size: {info.size:,} bytes ({format_size(info.size)})")
    output(f"  Location: {dispatcher.roots.backups_dir}")
    output()
    output("To restore from this backup, run:")
    output(f"  docvault restore {info.filename}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List backup archives."""
    dispatcher = _open_dispatcher(args)
    backups = dispatcher.manager.list_backups()

    if args.format == "json":
        output(json.dumps([b.to_dict() for b in backups], indent=2), force=True)
        return 0

    if args.format == "csv":
        rows = [[b.filename, b.size, b.created_at.isoformat()] for b in backups]
        output(format_as_csv(["filename", "size", "created_at"], rows), force=True)
        return 0

    if not backups:
        output("No backups found.")
        return 0

    width = max(len(b.filename) for b in backups)
    output(f"{'FILE':<{width}}  {'SIZE':>10}  CREATED")
    for b in backups:
        output(
            f"{b.filename:<{width}}  {format_size(b.size):>10}  "
            f"{b.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
            force=True,
        )
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore documents from a backup archive."""
    dispatcher = _open_dispatcher(args)
    info = dispatcher.manager.get_backup(args.backup_file)

    output(f"Backup file: {info.filename}")
    output(f"  Created: {info.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
    output(f"  Size: {format_size(info.size)}")
    output()

    if not args.force:
        output("WARNING: This will replace all current documents.")
        output("(A safety backup of the current documents will be created first)")
        output()
        if not _confirm("Proceed with restore?"):
            output("Restore cancelled.")
            return 0

    output("Restoring...")
    result = dispatcher.manager.restore_backup(info.filename)

    output()
    output("Restore completed successfully!")
    output()
    output(f"  Documents restored: {result.files_restored}")
    output(f"  Previous data backed up to: {result.safety_backup.filename}")
    output()
    output("To undo this restore, run:")
    output(f"  docvault restore {result.safety_backup.filename}")
    return 0


def cmd_import(args: argparse.Namespace) -> int:
    """Import an external backup archive."""
    dispatcher = _open_dispatcher(args)
    label = _label_arg(args, dispatcher.settings)

    info = dispatcher.manager.import_backup(args.source, label)
    output(f"Imported {args.source} as {info.filename} ({format_size(info.size)})")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Copy a backup archive to another location."""
    dispatcher = _open_dispatcher(args)
    dest = dispatcher.manager.export_backup(args.backup_file, args.dest)
    output(f"Exported {args.backup_file} to {dest}")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a backup archive."""
    dispatcher = _open_dispatcher(args)
    info = dispatcher.manager.get_backup(args.backup_file)

    if not args.force:
        output("This action cannot be undone.")
        if not _confirm(f"Delete {info.filename}?"):
            output("Delete cancelled.")
            return 0

    dispatcher.manager.delete_backup(info.filename)
    output(f"Deleted {info.filename}")
    return 0


def cmd_auto_backup(args: argparse.Namespace) -> int:
    """Create a backup if the automatic backup interval has elapsed."""
    dispatcher = _open_dispatcher(args)

    if not dispatcher.settings.auto_backup.enabled:
        output("Automatic backups are disabled (auto_backup.enabled in config).")
        return 0

    info = dispatcher.scheduler.run_if_due(label=_label_arg(args, dispatcher.settings))
    if info is None:
        next_run = dispatcher.scheduler.next_run()
        when = next_run.strftime("%Y-%m-%d %H:%M:%S") if next_run else "now"
        output(f"No backup due. Next automatic backup: {when}")
    else:
        output(f"Automatic backup created: {info.filename}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the command interface as JSON lines on stdin/stdout."""
    dispatcher = _open_dispatcher(args)
    logger.info(f"Serving commands for {dispatcher.roots.base}")
    serve_stream(dispatcher, sys.stdin, sys.stdout)
    return 0


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for docvault CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    set_output_mode(args.quiet, args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        settings = _resolve_settings(args)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)

    setup_logging(
        args.verbose,
        args.quiet,
        log_file=settings.base_path / LOG_DIR_NAME / LOG_FILE_NAME,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count,
        file_level=settings.log_level,
    )

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except DocVaultError as e:
        logger.debug("Command failed", exc_info=True)
        output_error(f"Error ({e.kind.value}): {e.message}")
        sys.exit(1)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
