"""Collect archived WAL segments and a schema snapshot for incremental backups.

The collector reads from the WAL archive directory that the database's
``archive_command`` writes to.  Only the files are copied; replaying them is
left to PostgreSQL recovery on the restore side.
"""

import logging
import shutil
from pathlib import Path

from pg_backup_tool.adapters.postgres import PostgresTools
from pg_backup_tool.backup.models import EXTENSIONS_FILENAME, SCHEMA_FILENAME, WAL_SUBDIR
from pg_backup_tool.errors import WALRangeError

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"
HISTORY_MARKER = ".history"
SEGMENT_NAME_LENGTH = 24
SEGMENT_PREFIXES = ("0000", "0001")
WALDUMP_LIMIT = 1000

EXTENSIONS_QUERY = (
    "SELECT 'CREATE EXTENSION IF NOT EXISTS \"' || extname || '\";' FROM pg_extension;"
)


def parse_segment_listing(output: str) -> list[str]:
    """Extract segment filenames from pg_waldump output.

    Takes the first whitespace-delimited field of each non-empty line,
    strips a ``.partial`` suffix, and drops timeline ``.history`` entries.
    """
    files: list[str] = []
    for line in output.splitlines():
        fields = line.split()
        if not fields:
            continue
        name = fields[0]
        if PARTIAL_SUFFIX in name:
            name = name.split(PARTIAL_SUFFIX)[0]
        if HISTORY_MARKER in name:
            continue
        files.append(name)
    return files


def is_segment_name(name: str) -> bool:
    """Fixed-width WAL segment filename (24 hex characters, timeline 0000/0001)."""
    return len(name) == SEGMENT_NAME_LENGTH and name.startswith(SEGMENT_PREFIXES)


def copy_file(src: Path, dst: Path) -> None:
    """Byte-for-byte copy, creating the destination directory if needed."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)


class IncrementalCollector:
    """Copy the WAL range between two positions into a backup directory.

    Args:
        tools: PostgreSQL client wrapper (pg_waldump, pg_dump, psql).
        archive_dir: WAL archive directory to read segments from.
    """

    def __init__(self, tools: PostgresTools, archive_dir: Path) -> None:
        self.tools = tools
        self.archive_dir = archive_dir

    async def resolve_wal_range(self, start: str, end: str) -> list[str]:
        """List the segment files covering ``start``..``end``.

        Raises:
            WALRangeError: If pg_waldump fails; callers fall back to
                ``copy_all_wal_files``.
        """
        try:
            result = await self.tools.waldump(
                self.archive_dir, start, end, limit=WALDUMP_LIMIT
            )
        except OSError as e:
            raise WALRangeError(f"pg_waldump could not be started: {e}") from e

        if not result.ok:
            raise WALRangeError(
                f"pg_waldump exited with {result.returncode}: {result.stderr.strip()}"
            )
        return parse_segment_listing(result.stdout)

    def copy_wal_files(self, files: list[str], dest_dir: Path) -> int:
        """Copy ``files`` from the archive into ``dest_dir``.

        Missing sources and per-file copy errors are logged and skipped;
        the step never aborts because of one segment.

        Returns:
            Number of files actually copied.
        """
        copied = 0
        for name in files:
            src = self.archive_dir / name
            if not src.is_file():
                logger.debug(f"WAL file not found in archive: {name}")
                continue
            try:
                copy_file(src, dest_dir / name)
            except OSError as e:
                logger.warning(f"Failed to copy WAL file {name}: {e}")
                continue
            copied += 1
        return copied

    def copy_all_wal_files(self, dest_dir: Path) -> int:
        """Copy every archived segment regardless of range bounds.

        A missing archive directory copies nothing.

        Raises:
            OSError: If the archive directory exists but cannot be listed.
        """
        if not self.archive_dir.is_dir():
            logger.debug(f"WAL archive directory does not exist: {self.archive_dir}")
            return 0

        copied = 0
        for entry in sorted(self.archive_dir.iterdir()):
            if not entry.is_file() or not is_segment_name(entry.name):
                continue
            try:
                copy_file(entry, dest_dir / entry.name)
            except OSError as e:
                logger.warning(f"Failed to copy WAL file {entry.name}: {e}")
                continue
            copied += 1

        logger.info(f"Copied {copied} WAL files from archive")
        return copied

    async def collect(self, backup_dir: Path, start: str, end: str) -> int:
        """Copy the WAL for ``start``..``end`` into ``<backup_dir>/wal``.

        Returns:
            Number of segment files copied.

        Raises:
            OSError: If the ``wal/`` directory cannot be created or the
                archive cannot be listed.
        """
        wal_dir = backup_dir / WAL_SUBDIR
        wal_dir.mkdir(parents=True, exist_ok=True)

        try:
            files = await self.resolve_wal_range(start, end)
        except WALRangeError as e:
            logger.warning(f"Failed to get WAL files via pg_waldump: {e}")
            return self.copy_all_wal_files(wal_dir)

        copied = self.copy_wal_files(files, wal_dir)
        logger.info(f"Copied {copied} WAL files for range {start} - {end}")
        return copied

    async def save_schema_snapshot(self, backup_dir: Path) -> bool:
        """Dump the schema and an extension-recreation script.

        Supplementary data: every failure is logged, none is raised.

        Returns:
            True if both files were written.
        """
        ok = True

        try:
            result = await self.tools.dump_schema(backup_dir / SCHEMA_FILENAME)
            if not result.ok:
                logger.warning(f"Failed to dump schema: {result.stderr.strip()}")
                ok = False
        except OSError as e:
            logger.warning(f"Failed to dump schema: {e}")
            ok = False

        try:
            result = await self.tools.query(
                EXTENSIONS_QUERY, output_file=backup_dir / EXTENSIONS_FILENAME
            )
            if not result.ok:
                logger.warning(
                    f"Failed to save extension script: {result.stderr.strip()}"
                )
                ok = False
        except OSError as e:
            logger.warning(f"Failed to save extension script: {e}")
            ok = False

        return ok
