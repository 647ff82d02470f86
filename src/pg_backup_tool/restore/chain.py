"""Resolve restore targets and walk parent links back to a full backup.

Unlike backup creation, chain resolution never substitutes or skips: a
broken parent link is a hard error, since silently dropping an incremental
step would restore the wrong data.
"""

import logging
from pathlib import Path

from pg_backup_tool.backup.models import (
    BackupMetadata,
    BackupType,
    ChainLink,
    latest_backup_dir,
    load_metadata,
)
from pg_backup_tool.errors import BackupNotFoundError, ChainError, InvalidMetadataError

logger = logging.getLogger(__name__)

LATEST = "latest"


def locate_backup_dir(identifier: str, backup_root: Path) -> Path:
    """Resolve a restore identifier to a backup directory.

    Args:
        identifier: ``"latest"`` for the most recently modified backup
            directory, otherwise a path that is absolute or relative to
            ``backup_root``.
        backup_root: Directory holding the backup directories.

    Returns:
        Path of the backup directory.

    Raises:
        BackupNotFoundError: If nothing matches or the path is not a directory.
    """
    if identifier == LATEST:
        latest = latest_backup_dir(backup_root)
        if latest is None:
            raise BackupNotFoundError(f"No backup found in {backup_root}")
        return latest

    path = Path(identifier)
    if not path.is_absolute():
        path = backup_root / path

    if not path.exists():
        raise BackupNotFoundError(f"Backup not found: {path}")
    if not path.is_dir():
        raise BackupNotFoundError(f"Not a directory: {path}")
    return path


def build_backup_chain(
    start_dir: Path,
    backup_root: Path,
    start_metadata: BackupMetadata | None = None,
) -> list[ChainLink]:
    """Build the ordered chain needed to restore ``start_dir``.

    Starting at the target, each incremental record's ``parent`` is loaded
    from ``backup_root`` until a full record is reached.

    Args:
        start_dir: Target backup directory.
        backup_root: Directory parents are resolved against.
        start_metadata: Already-loaded metadata of ``start_dir``.

    Returns:
        Chain oldest (full) first, ending at the target; for every adjacent
        pair ``chain[i + 1].metadata.parent == chain[i].name``.

    Raises:
        ChainError: If an incremental has no parent, a parent's metadata is
            missing or unreadable, or the parent links form a cycle.
    """
    if start_metadata is None:
        start_metadata = _load_link_metadata(start_dir)

    chain: list[ChainLink] = []
    seen: set[str] = set()
    current_dir, current_meta = start_dir, start_metadata

    while True:
        chain.insert(0, ChainLink(directory=current_dir, metadata=current_meta))
        seen.add(current_dir.name)

        if current_meta.type is BackupType.FULL:
            break

        if not current_meta.parent:
            raise ChainError(f"Incremental backup has no parent: {current_dir}")
        if current_meta.parent in seen:
            raise ChainError(
                f"Backup chain cycle: {current_dir.name} -> {current_meta.parent}"
            )

        parent_dir = backup_root / current_meta.parent
        current_meta = _load_link_metadata(parent_dir, child=current_dir)
        current_dir = parent_dir

    logger.info(
        f"Backup chain: {' -> '.join(link.name for link in chain)}"
    )
    return chain


def _load_link_metadata(directory: Path, child: Path | None = None) -> BackupMetadata:
    try:
        return load_metadata(directory)
    except (OSError, InvalidMetadataError) as e:
        what = f"parent metadata {directory}" if child else f"metadata {directory}"
        raise ChainError(f"Failed to load {what}: {e}") from e
