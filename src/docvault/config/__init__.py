"""
Configuration management for docvault.

This module handles loading, validating, and saving configuration settings.
"""

from docvault.config.settings import (
    ConfigurationError,
    Settings,
    load_config,
    save_config,
)

__all__ = [
    "Settings",
    "load_config",
    "save_config",
    "ConfigurationError",
]
