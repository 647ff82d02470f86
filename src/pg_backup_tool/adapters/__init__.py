"""Command adapters package.

Provides the ``CommandRunner`` Protocol, the asyncio subprocess runner, and
the ``PostgresTools`` wrapper that drives the PostgreSQL client binaries.

Usage:
    from pg_backup_tool.adapters import CommandRunner, PostgresTools, SubprocessRunner
"""

from pg_backup_tool.adapters.base import CommandResult, CommandRunner
from pg_backup_tool.adapters.postgres import PostgresTools
from pg_backup_tool.adapters.subprocess_runner import SubprocessRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "PostgresTools",
    "SubprocessRunner",
]
