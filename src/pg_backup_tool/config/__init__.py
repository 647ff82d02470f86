"""Configuration management: TOML loading and config models.

Usage:
    >>> from pg_backup_tool.config import load_config, ToolConfig
"""

from pg_backup_tool.config.loader import load_config
from pg_backup_tool.config.models import (
    BackupSettings,
    ConnectionSettings,
    LoggingSettings,
    RestoreSettings,
    ToolConfig,
)

__all__ = [
    "load_config",
    "ToolConfig",
    "ConnectionSettings",
    "BackupSettings",
    "RestoreSettings",
    "LoggingSettings",
]
