"""Delete backup directories older than the retention window."""

import logging
import shutil
import time
from pathlib import Path

from pg_backup_tool.backup.models import list_backup_dirs

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class RetentionSweeper:
    """Remove ``full_*`` / ``incremental_*`` directories past retention.

    Age is judged by directory modification time.  Removal failures are
    logged and the sweep moves on.

    Args:
        backup_root: Directory holding the backup directories.
        retention_days: Window in days; ``<= 0`` disables the sweep.
    """

    def __init__(self, backup_root: Path, retention_days: int) -> None:
        self.backup_root = backup_root
        self.retention_days = retention_days

    def sweep(self, now: float | None = None) -> list[str]:
        """Remove expired backup directories.

        Args:
            now: Reference time as a POSIX timestamp (default: current time).

        Returns:
            Names of the directories that were removed.
        """
        if self.retention_days <= 0:
            return []

        cutoff = (now if now is not None else time.time()) - self.retention_days * SECONDS_PER_DAY

        removed: list[str] = []
        for path in list_backup_dirs(self.backup_root):
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            if mtime >= cutoff:
                continue

            logger.info(f"Removing old backup: {path}")
            try:
                shutil.rmtree(path)
            except OSError as e:
                logger.warning(f"Failed to remove old backup {path}: {e}")
                continue
            removed.append(path.name)

        return removed
