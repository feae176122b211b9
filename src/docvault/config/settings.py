"""
Configuration settings management for docvault.

This module handles loading, validating, and saving configuration settings
from YAML files with support for environment variable overrides.

Configuration is loaded from ~/.docvault/config.yaml by default, with the
path overridable via the DOCVAULT_CONFIG environment variable.

Example config.yaml:

    docvault:
      base_dir: ~/.docvault
      log_level: INFO
    logging:
      max_bytes: 50000
      backup_count: 3
    backup:
      word: backup
      import_marker: external
      organization: Acme Academy
      recognized_keys: [courses.json, students.json, enrollments.json]
    auto_backup:
      enabled: true
      interval_hours: 24
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from docvault.backup.manager import (
    DEFAULT_BACKUP_WORD,
    DEFAULT_IMPORT_MARKER,
    DEFAULT_RECOGNIZED_KEYS,
)
from docvault.backup.scheduler import DEFAULT_INTERVAL_HOURS

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".docvault"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Rotating log defaults: 50 KB per file
DEFAULT_LOG_MAX_BYTES = 50_000
DEFAULT_LOG_BACKUP_COUNT = 3


@dataclass
class LoggingConfig:
    """Rotating log file settings."""

    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT


@dataclass
class BackupConfig:
    """Archive naming and import validation settings."""

    word: str = DEFAULT_BACKUP_WORD
    import_marker: str = DEFAULT_IMPORT_MARKER
    organization: str = ""
    recognized_keys: list[str] = field(default_factory=lambda: list(DEFAULT_RECOGNIZED_KEYS))


@dataclass
class AutoBackupConfig:
    """Automatic backup settings."""

    enabled: bool = False
    interval_hours: int = DEFAULT_INTERVAL_HOURS


@dataclass
class Settings:
    """
    Complete docvault configuration settings.

    Settings are loaded from a YAML configuration file and can be overridden
    by environment variables prefixed with DOCVAULT_.

    Attributes:
        base_dir: Directory holding the data and backups roots and the logs.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        logging: Rotating log file settings.
        backup: Archive naming and import settings.
        auto_backup: Automatic backup settings.
    """

    base_dir: str = str(DEFAULT_CONFIG_DIR)
    log_level: str = "INFO"

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    auto_backup: AutoBackupConfig = field(default_factory=AutoBackupConfig)

    @property
    def base_path(self) -> Path:
        """Base directory as an expanded Path."""
        return Path(self.base_dir).expanduser()


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from DOCVAULT_CONFIG environment variable if set,
    otherwise returns the default path (~/.docvault/config.yaml).
    """
    env_path = os.environ.get("DOCVAULT_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load configuration from YAML file.

    Reads configuration from the specified path (or default if not provided),
    applies environment variable overrides, and validates the configuration.
    A missing file is not an error; defaults are used.

    Args:
        config_path: Optional path to configuration file.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the configuration file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

        try:
            settings = _apply_config_data(settings, config_data)
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Invalid value in config file: {e}") from e

    try:
        settings = _apply_environment_overrides(settings)
    except ValueError as e:
        raise ConfigurationError(f"Invalid environment override: {e}") from e

    _validate_config(settings)

    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()

    config_data = _settings_to_dict(settings)

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    docvault_data = data.get("docvault") or {}

    if "base_dir" in docvault_data:
        settings.base_dir = str(docvault_data["base_dir"])
    if "log_level" in docvault_data:
        settings.log_level = str(docvault_data["log_level"]).upper()

    logging_data = data.get("logging") or {}
    if "max_bytes" in logging_data:
        settings.logging.max_bytes = int(logging_data["max_bytes"])
    if "backup_count" in logging_data:
        settings.logging.backup_count = int(logging_data["backup_count"])

    backup = data.get("backup") or {}
    if "word" in backup:
        settings.backup.word = str(backup["word"])
    if "import_marker" in backup:
        settings.backup.import_marker = str(backup["import_marker"])
    if "organization" in backup:
        settings.backup.organization = str(backup["organization"] or "")
    if "recognized_keys" in backup:
        settings.backup.recognized_keys = [str(key) for key in backup["recognized_keys"] or []]

    auto_backup = data.get("auto_backup") or {}
    if "enabled" in auto_backup:
        settings.auto_backup.enabled = bool(auto_backup["enabled"])
    if "interval_hours" in auto_backup:
        settings.auto_backup.interval_hours = int(auto_backup["interval_hours"])

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "DOCVAULT_BASE_DIR": ("base_dir", str),
        "DOCVAULT_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "DOCVAULT_ORGANIZATION": ("backup.organization", str),
        "DOCVAULT_AUTO_BACKUP_INTERVAL_HOURS": ("auto_backup.interval_hours", int),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested_attr(settings, attr_path, converter(value))

    return settings


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if settings.logging.max_bytes < 1:
        raise ConfigurationError("logging.max_bytes must be at least 1")
    if settings.logging.backup_count < 0:
        raise ConfigurationError("logging.backup_count must not be negative")

    if not settings.backup.word:
        raise ConfigurationError("backup.word must not be empty")
    for name, value in (("backup.word", settings.backup.word), ("backup.import_marker", settings.backup.import_marker)):
        if "/" in value or "\\" in value:
            raise ConfigurationError(f"{name} must not contain path separators")

    if not settings.backup.recognized_keys:
        raise ConfigurationError("backup.recognized_keys must list at least one document")

    if settings.auto_backup.interval_hours < 1:
        raise ConfigurationError("auto_backup.interval_hours must be at least 1")


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings instance to dictionary for YAML serialization."""
    return {
        "docvault": {
            "base_dir": settings.base_dir,
            "log_level": settings.log_level,
        },
        "logging": {
            "max_bytes": settings.logging.max_bytes,
            "backup_count": settings.logging.backup_count,
        },
        "backup": {
            "word": settings.backup.word,
            "import_marker": settings.backup.import_marker,
            "organization": settings.backup.organization,
            "recognized_keys": list(settings.backup.recognized_keys),
        },
        "auto_backup": {
            "enabled": settings.auto_backup.enabled,
            "interval_hours": settings.auto_backup.interval_hours,
        },
    }
