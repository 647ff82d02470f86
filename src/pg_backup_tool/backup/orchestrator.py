"""Backup run orchestration: full/incremental decision, fallback, post-steps.

One ``create_backup()`` call produces one backup directory under the output
root.  Incremental mode is best-effort: whenever an incremental backup cannot
be produced correctly the run degrades to a full backup instead of failing,
so a scheduled run always ends in a restorable artifact.

Usage:
    from pg_backup_tool.backup.orchestrator import BackupOrchestrator
    from pg_backup_tool.adapters import SubprocessRunner

    orchestrator = BackupOrchestrator(config.postgres, config.backup, SubprocessRunner())
    orchestrator.set_incremental_mode(True)
    result = await orchestrator.create_backup()
"""

import logging
import shutil
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from pg_backup_tool.adapters.base import CommandRunner
from pg_backup_tool.adapters.postgres import PostgresTools
from pg_backup_tool.backup.collector import IncrementalCollector
from pg_backup_tool.backup.models import (
    BackupMetadata,
    BackupResult,
    BackupType,
    backup_dir_name,
    directory_stats,
    latest_backup_dir,
    load_metadata,
    save_metadata,
)
from pg_backup_tool.backup.retention import RetentionSweeper
from pg_backup_tool.backup.splitter import split_large_files
from pg_backup_tool.backup.wal import WALPositionTracker
from pg_backup_tool.config.models import BackupSettings, ConnectionSettings
from pg_backup_tool.errors import BackupDirectoryError, InvalidMetadataError, WALPositionError

logger = logging.getLogger(__name__)

# Failures on the incremental path that degrade the run to a full backup
_FALLBACK_ERRORS = (WALPositionError, InvalidMetadataError, OSError)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class BackupOrchestrator:
    """Drive backup runs against one database into one output root.

    ``last_backup_dir`` and ``last_wal_position`` are a cache for the
    lifetime of this instance only; every run reloads them from the most
    recent backup directory's metadata on disk.

    Args:
        connection: Source database connection settings.
        settings: Backup settings (output root, split size, retention, ...).
        runner: Command runner for pg_dump / psql / pg_waldump.
        clock: Returns the current time; used for directory names and
            metadata timestamps.
    """

    def __init__(
        self,
        connection: ConnectionSettings,
        settings: BackupSettings,
        runner: CommandRunner,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.tools = PostgresTools(connection, runner)
        self.tracker = WALPositionTracker(self.tools)
        self.collector = IncrementalCollector(self.tools, settings.archive_dir)
        self.sweeper = RetentionSweeper(settings.output_dir, settings.retention_days)
        self.incremental = settings.incremental
        self._clock = clock or _local_now

        self.last_backup_dir: Path | None = None
        self.last_wal_position: str = ""

    def set_incremental_mode(self, enabled: bool) -> None:
        self.incremental = enabled

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def find_last_backup(self) -> bool:
        """Load the most recent backup as the parent candidate.

        Picks the most recently modified ``full_*``/``incremental_*``
        directory under the output root and reads its metadata.

        Returns:
            True if that backup recorded a ``wal_end`` an incremental
            backup can start from, False otherwise.
        """
        self.last_backup_dir = None
        self.last_wal_position = ""

        latest = latest_backup_dir(self.settings.output_dir)
        if latest is None:
            return False

        self.last_backup_dir = latest
        logger.info(f"Found last backup: {latest.name}")

        try:
            metadata = load_metadata(latest)
        except (OSError, InvalidMetadataError) as e:
            logger.debug(f"Cannot read metadata of {latest.name}: {e}")
            return False

        if not metadata.wal_end:
            logger.debug("No WAL position in metadata, will use full backup")
            return False

        self.last_wal_position = metadata.wal_end
        logger.info(f"Last WAL position from metadata: {self.last_wal_position}")
        return True

    async def create_backup(self) -> BackupResult:
        """Run one backup and its post-steps.

        Returns:
            ``BackupResult`` with the directory, metadata and post-step outcome.

        Raises:
            BackupDirectoryError: If the backup directory cannot be created.
            DumpError: If pg_dump exits non-zero.
        """
        started = self._clock()

        metadata: BackupMetadata | None = None
        directory: Path | None = None

        if self.incremental and self.find_last_backup():
            directory = self._create_directory(BackupType.INCREMENTAL, started)
            try:
                metadata = await self._create_incremental_backup(directory, started)
            except _FALLBACK_ERRORS as e:
                logger.warning(f"Incremental backup failed, falling back to full backup: {e}")
                self._discard_directory(directory)
                metadata = None

        if metadata is None:
            directory = self._create_directory(BackupType.FULL, started)
            metadata = await self._create_full_backup(directory, started)

        result = BackupResult(directory=directory, metadata=metadata)

        try:
            save_metadata(directory, metadata)
        except OSError as e:
            logger.warning(f"Failed to save metadata: {e}")
            result.metadata_saved = False

        result.split_files = split_large_files(directory, self.settings.split_size_bytes)
        result.removed_backups = self.sweeper.sweep()
        self.last_backup_dir = directory

        return result

    # ------------------------------------------------------------------
    # Backup paths
    # ------------------------------------------------------------------

    async def _create_full_backup(self, directory: Path, started: datetime) -> BackupMetadata:
        logger.info("Starting full pg_dump...")
        await self.tools.dump_directory(directory, jobs=self.settings.dump_jobs)

        size, file_count = directory_stats(directory)

        try:
            wal_end = await self.tracker.get_current_wal_position()
        except WALPositionError as e:
            logger.warning(f"Could not record WAL position for full backup: {e}")
            wal_end = ""

        self.last_wal_position = wal_end
        logger.info(f"Full backup completed successfully. WAL position: {wal_end or '(unknown)'}")

        return BackupMetadata(
            type=BackupType.FULL,
            timestamp=started,
            wal_end=wal_end,
            size=size,
            file_count=file_count,
        )

    async def _create_incremental_backup(
        self, directory: Path, started: datetime
    ) -> BackupMetadata:
        wal_end = await self.tracker.get_current_wal_position()
        if not wal_end:
            raise WALPositionError("WAL position query returned an empty result")

        metadata = BackupMetadata(
            type=BackupType.INCREMENTAL,
            timestamp=started,
            parent=self.last_backup_dir.name if self.last_backup_dir else "",
            wal_start=self.last_wal_position,
            wal_end=wal_end,
        )
        # No previous WAL position or parent: cannot chain, fall back
        metadata.check_lineage()

        await self.collector.collect(directory, metadata.wal_start, metadata.wal_end)
        await self.collector.save_schema_snapshot(directory)

        metadata.size, metadata.file_count = directory_stats(directory)
        self.last_wal_position = wal_end

        logger.info(
            f"Incremental backup completed successfully. "
            f"WAL range: {metadata.wal_start} -> {metadata.wal_end}"
        )
        return metadata

    # ------------------------------------------------------------------
    # Directory handling
    # ------------------------------------------------------------------

    def _create_directory(self, backup_type: BackupType, started: datetime) -> Path:
        directory = self.settings.output_dir / backup_dir_name(backup_type, started)
        try:
            directory.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise BackupDirectoryError(
                f"Failed to create backup directory {directory}: {e}"
            ) from e

        logger.info(f"Creating {backup_type.value} backup in directory: {directory}")
        return directory

    def _discard_directory(self, directory: Path) -> None:
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.warning(f"Failed to remove abandoned backup directory {directory}: {e}")
