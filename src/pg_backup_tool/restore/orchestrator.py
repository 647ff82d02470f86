"""Restore orchestration: resolve the target, build its chain, replay it.

Steps run strictly in chain order.  A failing step aborts the restore with a
``RestoreError`` naming the step; nothing is rolled back, so the target
database is left as the last completed step produced it.

Usage:
    from pg_backup_tool.restore.orchestrator import RestoreOrchestrator
    from pg_backup_tool.adapters import SubprocessRunner

    orchestrator = RestoreOrchestrator(
        config.restore_target, config.restore, config.backup_root, SubprocessRunner()
    )
    result = await orchestrator.restore("latest")
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from pg_backup_tool.adapters.base import CommandRunner
from pg_backup_tool.adapters.postgres import PostgresTools
from pg_backup_tool.backup.collector import copy_file
from pg_backup_tool.backup.models import BackupType, ChainLink, WAL_SUBDIR, load_metadata
from pg_backup_tool.config.models import ConnectionSettings, RestoreSettings
from pg_backup_tool.errors import BackupToolError, RestoreError
from pg_backup_tool.restore.assembler import FileAssembler
from pg_backup_tool.restore.chain import build_backup_chain, locate_backup_dir

logger = logging.getLogger(__name__)


class StepResult(BaseModel):
    """Outcome of one executed chain step."""

    step: int
    directory: Path
    type: BackupType
    assembled_files: int = 0
    wal_files_copied: int = 0


class RestoreResult(BaseModel):
    """Summary returned by ``RestoreOrchestrator.restore()``."""

    target: Path
    steps: list[StepResult] = Field(default_factory=list)


class RestoreOrchestrator:
    """Restore a backup chain into the target database.

    Args:
        target: Connection settings of the database to restore into.
        settings: Restore settings (drop flag, jobs, WAL destination).
        backup_root: Directory holding the backup directories.
        runner: Command runner for pg_restore / psql.
    """

    def __init__(
        self,
        target: ConnectionSettings,
        settings: RestoreSettings,
        backup_root: Path,
        runner: CommandRunner,
    ) -> None:
        self.settings = settings
        self.backup_root = backup_root
        self.tools = PostgresTools(target, runner)
        self.assembler = FileAssembler()

    async def restore(self, identifier: str) -> RestoreResult:
        """Restore the backup named by ``identifier``.

        Args:
            identifier: ``"latest"`` or a backup directory path (absolute or
                relative to the backup root).

        Returns:
            ``RestoreResult`` listing the executed steps in order.

        Raises:
            RestoreError: Wrapping the stage that failed (locate, metadata,
                chain, or a numbered step).
        """
        logger.info(f"Starting restore process for identifier: {identifier}")

        try:
            target_dir = locate_backup_dir(identifier, self.backup_root)
        except (OSError, BackupToolError) as e:
            raise RestoreError(f"failed to locate backup: {e}") from e
        logger.info(f"Found backup directory: {target_dir}")

        try:
            metadata = load_metadata(target_dir)
        except (OSError, BackupToolError) as e:
            raise RestoreError(f"failed to load metadata: {e}") from e
        logger.info(f"Backup type: {metadata.type.value}, timestamp: {metadata.timestamp}")

        try:
            chain = build_backup_chain(target_dir, self.backup_root, metadata)
        except BackupToolError as e:
            raise RestoreError(f"failed to build backup chain: {e}") from e

        result = RestoreResult(target=target_dir)
        for number, link in enumerate(chain, start=1):
            logger.info(
                f"--- Step {number}: processing {link.type.value} backup at {link.directory}"
            )
            try:
                step = await self._run_step(number, link)
            except (OSError, BackupToolError) as e:
                raise RestoreError(
                    f"step {number} ({link.type.value} backup {link.directory}) failed: {e}"
                ) from e
            result.steps.append(step)

        logger.info("Restore completed successfully")
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _run_step(self, number: int, link: ChainLink) -> StepResult:
        step = StepResult(step=number, directory=link.directory, type=link.type)
        step.assembled_files = self.assembler.assemble_files(link.directory)

        if link.type is BackupType.FULL:
            await self._restore_full_backup(link.directory)
        else:
            step.wal_files_copied = self._apply_incremental_backup(link.directory)
        return step

    async def _restore_full_backup(self, backup_dir: Path) -> None:
        logger.info(f"Restoring full backup from {backup_dir}")

        if self.settings.drop_database:
            logger.info(
                f"Dropping and recreating database {self.tools.connection.database}"
            )
            await self.tools.drop_and_create_database()

        await self.tools.restore_directory(backup_dir, jobs=self.settings.jobs)
        logger.info("Full backup restored successfully")

    def _apply_incremental_backup(self, backup_dir: Path) -> int:
        """Stage an incremental step's WAL files; returns the count copied."""
        logger.info(f"Applying incremental backup from {backup_dir}")

        wal_dir = backup_dir / WAL_SUBDIR
        if not wal_dir.is_dir():
            logger.warning(f"WAL directory not found in {backup_dir}, skipping")
            return 0

        destination = self.settings.wal_destination_dir
        if destination is None:
            logger.info(
                f"WAL files are available at {wal_dir}. "
                "To perform PITR, copy them manually."
            )
            return 0

        destination.mkdir(parents=True, exist_ok=True)
        copied = 0
        for entry in sorted(wal_dir.iterdir()):
            if not entry.is_file():
                continue
            try:
                copy_file(entry, destination / entry.name)
            except OSError as e:
                logger.warning(f"Failed to copy {entry.name}: {e}")
                continue
            copied += 1

        logger.info(f"Copied {copied} WAL files to {destination}")
        return copied
