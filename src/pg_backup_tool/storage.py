"""Disk-space preflight for backup runs."""

import shutil
from pathlib import Path

from pg_backup_tool.errors import InsufficientSpaceError

BYTES_PER_GB = 1024 ** 3


def _existing_ancestor(path: Path) -> Path:
    """``path`` itself or its nearest existing parent."""
    candidate = path.resolve()
    while not candidate.exists() and candidate != candidate.parent:
        candidate = candidate.parent
    return candidate


def free_space_gb(path: Path) -> int:
    """Whole gigabytes free on the filesystem holding ``path``."""
    return shutil.disk_usage(_existing_ancestor(path)).free // BYTES_PER_GB


def check_free_space(path: Path, min_free_gb: int) -> None:
    """Fail when less than ``min_free_gb`` is free under ``path``.

    ``min_free_gb <= 0`` disables the check.

    Raises:
        InsufficientSpaceError: If free space is below the minimum.
    """
    if min_free_gb <= 0:
        return

    free_gb = free_space_gb(path)
    if free_gb < min_free_gb:
        raise InsufficientSpaceError(
            f"Insufficient disk space: {free_gb} GB available, {min_free_gb} GB required"
        )
