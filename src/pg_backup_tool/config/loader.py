"""TOML configuration loader with environment password overrides."""

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from pg_backup_tool.config.models import ToolConfig
from pg_backup_tool.errors import ConfigError

DEFAULT_CONFIG_NAME = "pg-backup.toml"


def load_config(
    config_path: Path | None = None,
    env_prefix: str = "",
) -> ToolConfig:
    """Load tool configuration from a TOML file.

    Passwords may be supplied through the environment instead of the file:
    ``{env_prefix}PGPASSWORD`` overrides ``[postgres].password`` and
    ``{env_prefix}RESTORE_PGPASSWORD`` overrides ``[restore.target].password``.

    Args:
        config_path: Path to the TOML file (default: ``./pg-backup.toml``).
        env_prefix: Prefix for environment variable lookup
            (e.g., ``"APP_"`` reads ``APP_PGPASSWORD``).

    Returns:
        ToolConfig with every section populated (defaults for missing ones).

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigError: If the file is not valid TOML or fails validation.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if not config_path.exists():
        raise FileNotFoundError(
            f"Backup config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_NAME} or pass --config."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        config = ToolConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e

    source_password = os.environ.get(f"{env_prefix}PGPASSWORD")
    if source_password:
        config.postgres.password = source_password

    target_password = os.environ.get(f"{env_prefix}RESTORE_PGPASSWORD")
    if target_password:
        if config.restore.target is None:
            config.restore.target = config.postgres.model_copy()
        config.restore.target.password = target_password

    return config
