"""Current WAL insert position lookup."""

import logging

from pg_backup_tool.adapters.postgres import PostgresTools
from pg_backup_tool.errors import WALPositionError

logger = logging.getLogger(__name__)

CURRENT_WAL_QUERY = "SELECT pg_current_wal_lsn();"
# Name used before PostgreSQL 10 renamed xlog -> wal
LEGACY_WAL_QUERY = "SELECT pg_current_xlog_location();"


class WALPositionTracker:
    """Read the database's current WAL position through psql."""

    def __init__(self, tools: PostgresTools) -> None:
        self.tools = tools

    async def get_current_wal_position(self) -> str:
        """Return the current WAL insert location as an opaque token.

        Tries ``pg_current_wal_lsn()`` first and retries once with the
        legacy ``pg_current_xlog_location()`` on failure.

        Raises:
            WALPositionError: If both queries fail.
        """
        errors: list[str] = []

        for sql in (CURRENT_WAL_QUERY, LEGACY_WAL_QUERY):
            try:
                result = await self.tools.query(sql)
            except OSError as e:
                errors.append(str(e))
                continue

            if result.ok:
                return result.stdout.strip()

            errors.append(result.stderr.strip() or f"exit code {result.returncode}")
            logger.debug(f"WAL position query failed: {sql} ({errors[-1]})")

        raise WALPositionError(f"WAL position query failed: {'; '.join(errors)}")
