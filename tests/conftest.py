"""Shared fixtures: a fake command runner standing in for the PostgreSQL binaries.

The fake runner is an ``AsyncMock`` whose ``run`` dispatches on the program
name.  Defaults behave like a healthy server: ``pg_dump -F d`` writes a small
dump directory, ``pg_dump -s`` writes a schema file, the WAL position query
returns ``0/3000060``, ``psql -o`` writes its output file, and
``pg_restore`` succeeds.  ``pg_waldump`` fails by default (no archive).
Tests override a program by passing a handler keyword.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from pg_backup_tool.adapters.base import CommandResult

WAL_POSITION = "0/3000060"


def arg_value(args: list[str], flag: str) -> str:
    return args[args.index(flag) + 1]


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(returncode=0, stdout=stdout)


def failed(stderr: str = "error", returncode: int = 1) -> CommandResult:
    return CommandResult(returncode=returncode, stderr=stderr)


def default_pg_dump(args: list[str]) -> CommandResult:
    output = Path(arg_value(args, "-f"))
    if "-s" in args:
        output.write_text("CREATE TABLE items (id integer);\n")
        return ok()
    output.mkdir(parents=True, exist_ok=True)
    (output / "toc.dat").write_bytes(b"toc")
    (output / "3001.dat.gz").write_bytes(b"x" * 64)
    return ok()


def default_psql(args: list[str]) -> CommandResult:
    sql = arg_value(args, "-c")
    if "-o" in args:
        Path(arg_value(args, "-o")).write_text('CREATE EXTENSION IF NOT EXISTS "plpgsql";\n')
        return ok()
    if "pg_current_wal_lsn" in sql:
        return ok(f" {WAL_POSITION}\n\n")
    return ok()


def default_pg_waldump(args: list[str]) -> CommandResult:
    return failed("pg_waldump: could not find file")


def default_pg_restore(args: list[str]) -> CommandResult:
    return ok()


_DEFAULTS = {
    "pg_dump": default_pg_dump,
    "psql": default_psql,
    "pg_waldump": default_pg_waldump,
    "pg_restore": default_pg_restore,
}


def _make_runner(**handlers) -> AsyncMock:
    """Create a mock CommandRunner; ``handlers`` override per program."""
    table = {**_DEFAULTS, **handlers}

    async def _run(program, args, env=None):
        return table[program](args)

    runner = AsyncMock()
    runner.run = AsyncMock(side_effect=_run)
    return runner


def calls_for(runner: AsyncMock, program: str) -> list[list[str]]:
    """Argument lists of every call to ``program``, in order."""
    return [c.args[1] for c in runner.run.call_args_list if c.args[0] == program]


@pytest.fixture
def make_runner():
    return _make_runner
