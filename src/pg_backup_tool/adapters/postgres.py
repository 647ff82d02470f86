"""PostgreSQL client-binary wrapper.

Provides ``PostgresTools``, which builds the argument lists for ``pg_dump``,
``pg_restore``, ``pg_waldump`` and ``psql`` against one connection profile
and runs them through a ``CommandRunner``.

Usage:
    from pg_backup_tool.adapters.postgres import PostgresTools
    from pg_backup_tool.adapters.subprocess_runner import SubprocessRunner

    tools = PostgresTools(settings, SubprocessRunner())
    await tools.dump_directory(Path("/backups/full_20240101_000000"), jobs=4)
"""

import logging
from pathlib import Path

from pg_backup_tool.adapters.base import CommandResult, CommandRunner
from pg_backup_tool.config.models import ConnectionSettings
from pg_backup_tool.errors import DatabaseAdminError, DumpError, PgRestoreError

logger = logging.getLogger(__name__)

# Maintenance database used for DROP/CREATE DATABASE
ADMIN_DATABASE = "postgres"


def quote_identifier(name: str) -> str:
    """Quote a database name for use in DDL."""
    return '"' + name.replace('"', '""') + '"'


class PostgresTools:
    """Run PostgreSQL client binaries for one connection profile.

    The password is passed via ``PGPASSWORD`` in the child environment.

    Args:
        connection: Host, port, user, password and database to target.
        runner: Command runner used for every invocation.
    """

    def __init__(self, connection: ConnectionSettings, runner: CommandRunner) -> None:
        self.connection = connection
        self.runner = runner

    # ------------------------------------------------------------------
    # Argument helpers
    # ------------------------------------------------------------------

    def connection_args(self, database: str | None = None) -> list[str]:
        """``-h/-p/-U/-d`` arguments for this profile."""
        return [
            "-h", self.connection.host,
            "-p", str(self.connection.port),
            "-U", self.connection.user,
            "-d", database or self.connection.database,
        ]

    def env(self) -> dict[str, str]:
        if not self.connection.password:
            return {}
        return {"PGPASSWORD": self.connection.password}

    # ------------------------------------------------------------------
    # Dump / restore
    # ------------------------------------------------------------------

    async def dump_directory(self, output_dir: Path, jobs: int) -> CommandResult:
        """Directory-format dump of the whole database into ``output_dir``.

        Raises:
            DumpError: If pg_dump exits non-zero (stderr attached).
        """
        args = self.connection_args() + [
            "-F", "d",
            "-f", str(output_dir),
            "-j", str(jobs),
            "-v",
        ]
        result = await self.runner.run("pg_dump", args, env=self.env())
        if not result.ok:
            raise DumpError("pg_dump", result.returncode, result.stderr)
        return result

    async def dump_schema(self, output_file: Path) -> CommandResult:
        """Schema-only dump; the caller decides how to treat failures."""
        args = self.connection_args() + ["-s", "-f", str(output_file)]
        return await self.runner.run("pg_dump", args, env=self.env())

    async def restore_directory(self, input_dir: Path, jobs: int) -> CommandResult:
        """Restore a directory-format dump into the target database.

        Raises:
            PgRestoreError: If pg_restore exits non-zero (stderr attached).
        """
        args = self.connection_args() + [
            "-F", "d",
            "-j", str(jobs),
            "-v",
            str(input_dir),
        ]
        logger.debug(f"Running pg_restore {' '.join(args)}")
        result = await self.runner.run("pg_restore", args, env=self.env())
        if not result.ok:
            raise PgRestoreError("pg_restore", result.returncode, result.stderr)
        return result

    # ------------------------------------------------------------------
    # SQL client
    # ------------------------------------------------------------------

    async def query(
        self,
        sql: str,
        output_file: Path | None = None,
        database: str | None = None,
    ) -> CommandResult:
        """Run one statement with ``psql -t`` (tuples only).

        Args:
            sql: Statement to execute.
            output_file: When given, psql writes query output there (``-o``).
            database: Database to connect to instead of the profile's.
        """
        args = self.connection_args(database) + ["-t", "-c", sql]
        if output_file is not None:
            args += ["-o", str(output_file)]
        return await self.runner.run("psql", args, env=self.env())

    async def drop_and_create_database(self) -> None:
        """Drop (if present) and recreate the profile's database.

        Connects to the ``postgres`` maintenance database.

        Raises:
            DatabaseAdminError: If either statement fails.
        """
        name = quote_identifier(self.connection.database)
        for sql in (f"DROP DATABASE IF EXISTS {name};", f"CREATE DATABASE {name};"):
            result = await self.query(sql, database=ADMIN_DATABASE)
            if not result.ok:
                raise DatabaseAdminError(
                    "psql", result.returncode, result.stderr or result.stdout
                )

    # ------------------------------------------------------------------
    # WAL
    # ------------------------------------------------------------------

    async def waldump(
        self,
        archive_dir: Path,
        start: str,
        end: str,
        limit: int = 1000,
    ) -> CommandResult:
        """List WAL records between two positions in the archive."""
        args = [
            "--path", str(archive_dir),
            "--start", start,
            "--end", end,
            "--quiet",
            "-n", str(limit),
        ]
        return await self.runner.run("pg_waldump", args)
