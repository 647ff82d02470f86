"""Pydantic models for the backup tool configuration."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Configuration Models
# ============================================================================


class ConnectionSettings(BaseModel):
    """PostgreSQL connection parameters passed to the client binaries."""

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""  # Passed via PGPASSWORD, never on the command line
    database: str = "postgres"


class BackupSettings(BaseModel):
    """Settings for backup runs."""

    output_dir: Path = Path("/var/backups/postgres")
    wal_archive_dir: Path | None = None  # Defaults to <output_dir>/wal_archive
    split_size_mb: int = Field(default=0, ge=0)  # 0 disables splitting
    retention_days: int = 0  # <= 0 disables the retention sweep
    min_free_space_gb: int = 0  # <= 0 disables the preflight check
    dump_jobs: int = Field(default=4, ge=1)
    incremental: bool = False

    @field_validator("wal_archive_dir", mode="before")
    @classmethod
    def _empty_archive_dir(cls, value: object) -> object:
        return None if value == "" else value

    @property
    def archive_dir(self) -> Path:
        """Directory holding archived WAL segments (``archive_command`` target)."""
        return self.wal_archive_dir or self.output_dir / "wal_archive"

    @property
    def split_size_bytes(self) -> int:
        return self.split_size_mb * 1024 * 1024


class RestoreSettings(BaseModel):
    """Settings for restore runs."""

    target: ConnectionSettings | None = None  # Defaults to [postgres]
    backup_root: Path | None = None  # Defaults to backup.output_dir
    drop_database: bool = True
    jobs: int = Field(default=4, ge=1)
    wal_destination_dir: Path | None = None  # Unset: WAL is applied manually

    @field_validator("backup_root", "wal_destination_dir", mode="before")
    @classmethod
    def _empty_path(cls, value: object) -> object:
        return None if value == "" else value


class LoggingSettings(BaseModel):
    """Console and rotating file log settings."""

    level: str = "INFO"
    file: Path | None = None
    max_size_mb: int = Field(default=10, ge=1)
    max_backups: int = Field(default=5, ge=0)

    @field_validator("file", mode="before")
    @classmethod
    def _empty_file(cls, value: object) -> object:
        return None if value == "" else value

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class ToolConfig(BaseModel):
    """Complete configuration loaded from pg-backup.toml."""

    postgres: ConnectionSettings = Field(default_factory=ConnectionSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    restore: RestoreSettings = Field(default_factory=RestoreSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def restore_target(self) -> ConnectionSettings:
        """Connection used by restores; falls back to the backup source."""
        return self.restore.target or self.postgres

    @property
    def backup_root(self) -> Path:
        """Directory scanned by restores; falls back to the backup output dir."""
        return self.restore.backup_root or self.backup.output_dir
