"""Async subprocess implementation of the ``CommandRunner`` protocol.

Usage:
    from pg_backup_tool.adapters.subprocess_runner import SubprocessRunner

    runner = SubprocessRunner()
    result = await runner.run("pg_dump", ["--version"])
"""

import asyncio
import logging
import os

from pg_backup_tool.adapters.base import CommandResult

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """Run external tools with ``asyncio.create_subprocess_exec``.

    Commands are awaited to completion with no timeout; the caller's
    process lifetime is the only bound on long dumps and restores.
    """

    async def run(
        self,
        program: str,
        args: list[str],
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        merged_env = {**os.environ, **env} if env else None

        logger.debug(f"Running {program} {' '.join(args)}")

        process = await asyncio.create_subprocess_exec(
            program,
            *args,
            env=merged_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()

        return CommandResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
