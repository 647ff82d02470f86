"""Backup metadata model and on-disk layout helpers.

Every backup run writes one ``backup_metadata.json`` into its directory.
Incremental backups point at their parent by directory name, so a chain can
be rebuilt from the files on disk alone.

Usage:
    from pg_backup_tool.backup.models import BackupMetadata, BackupType

    meta = BackupMetadata(type=BackupType.FULL, timestamp=now, wal_end="0/3000060")
    save_metadata(backup_dir, meta)
    meta = load_metadata(backup_dir)
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from pg_backup_tool.errors import InvalidMetadataError

METADATA_FILENAME = "backup_metadata.json"
WAL_SUBDIR = "wal"
SCHEMA_FILENAME = "schema.sql"
EXTENSIONS_FILENAME = "extensions.sql"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

# Keys omitted from the JSON document when empty
_OMIT_WHEN_EMPTY = ("parent_backup", "wal_start", "wal_end")


class BackupType(str, Enum):
    """Closed set of backup kinds; chain walks branch on it exhaustively."""

    FULL = "full"
    INCREMENTAL = "incremental"

    @property
    def prefix(self) -> str:
        """Directory-name prefix (``full_`` / ``incremental_``)."""
        return f"{self.value}_"


BACKUP_PREFIXES = tuple(t.prefix for t in BackupType)


class BackupMetadata(BaseModel):
    """Persisted description of one backup directory."""

    model_config = ConfigDict(populate_by_name=True)

    type: BackupType
    timestamp: datetime
    parent: str = Field(
        default="",
        validation_alias=AliasChoices("parent_backup", "parent"),
        serialization_alias="parent_backup",
    )  # Parent directory name, empty iff full
    wal_start: str = ""  # Opaque LSN, passed through untouched
    wal_end: str = ""
    size: int = 0  # Total bytes of all regular files
    file_count: int = 0

    @field_validator("parent", "wal_start", "wal_end", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return "" if value is None else value

    def check_lineage(self) -> None:
        """Reject records that could not be placed in a chain.

        Raises:
            InvalidMetadataError: If an incremental record lacks its parent
                or either WAL bound, or a full record names a parent.
        """
        if self.type is BackupType.INCREMENTAL:
            missing = [
                name
                for name, value in (
                    ("parent", self.parent),
                    ("wal_start", self.wal_start),
                    ("wal_end", self.wal_end),
                )
                if not value
            ]
            if missing:
                raise InvalidMetadataError(
                    f"Incremental backup metadata missing: {', '.join(missing)}"
                )
        elif self.parent:
            raise InvalidMetadataError(
                f"Full backup metadata must not have a parent (got '{self.parent}')"
            )

    def to_json(self) -> str:
        """Serialize with the on-disk key names, omitting empty optional keys."""
        data = self.model_dump(mode="json", by_alias=True)
        for key in _OMIT_WHEN_EMPTY:
            if not data.get(key):
                data.pop(key, None)
        return json.dumps(data, indent=2)


class ChainLink(BaseModel):
    """One (directory, metadata) step of a restore chain."""

    directory: Path
    metadata: BackupMetadata

    @property
    def name(self) -> str:
        return self.directory.name

    @property
    def type(self) -> BackupType:
        return self.metadata.type


class BackupResult(BaseModel):
    """Summary returned by ``BackupOrchestrator.create_backup()``."""

    directory: Path
    metadata: BackupMetadata
    metadata_saved: bool = True
    split_files: list[str] = Field(default_factory=list)
    removed_backups: list[str] = Field(default_factory=list)


# ============================================================================
# Directory helpers
# ============================================================================


def backup_dir_name(backup_type: BackupType, when: datetime) -> str:
    """``<type>_<YYYYMMDD_HHMMSS>``"""
    return f"{backup_type.value}_{when.strftime(TIMESTAMP_FORMAT)}"


def is_backup_dir_name(name: str) -> bool:
    return name.startswith(BACKUP_PREFIXES)


def list_backup_dirs(root: Path) -> list[Path]:
    """Backup directories under ``root``, oldest modification time first.

    Entries whose ``stat`` fails (removed concurrently) are skipped. A
    missing root yields an empty list.
    """
    if not root.is_dir():
        return []

    found: list[tuple[float, Path]] = []
    for entry in root.iterdir():
        if not is_backup_dir_name(entry.name):
            continue
        try:
            if not entry.is_dir():
                continue
            found.append((entry.stat().st_mtime, entry))
        except OSError:
            continue

    found.sort(key=lambda item: item[0])
    return [path for _, path in found]


def latest_backup_dir(root: Path) -> Path | None:
    """Most recently modified backup directory, or None."""
    dirs = list_backup_dirs(root)
    return dirs[-1] if dirs else None


def directory_stats(directory: Path) -> tuple[int, int]:
    """Total size in bytes and count of regular files under ``directory``."""
    total_size = 0
    file_count = 0
    for path in directory.rglob("*"):
        if path.is_file():
            total_size += path.stat().st_size
            file_count += 1
    return total_size, file_count


# ============================================================================
# Metadata persistence
# ============================================================================


def save_metadata(directory: Path, metadata: BackupMetadata) -> Path:
    """Write ``backup_metadata.json`` into ``directory``.

    The document is created exclusively; an existing file is never
    overwritten.

    Raises:
        FileExistsError: If the directory already has a metadata document.
        OSError: On any other write failure.
    """
    path = directory / METADATA_FILENAME
    with open(path, "x") as f:
        f.write(metadata.to_json())
    return path


def load_metadata(directory: Path) -> BackupMetadata:
    """Read ``backup_metadata.json`` from ``directory``.

    Raises:
        FileNotFoundError: If the document does not exist.
        InvalidMetadataError: If it is not valid JSON or fails validation.
    """
    path = directory / METADATA_FILENAME
    raw = path.read_bytes()

    try:
        return BackupMetadata.model_validate_json(raw)
    except ValidationError as e:
        raise InvalidMetadataError(f"Invalid metadata in {path}: {e}") from e
