"""Command runner protocol definition.

Defines the ``CommandRunner`` Protocol that every external tool call goes
through (``pg_dump``, ``pg_restore``, ``pg_waldump``, ``psql``).  All methods
are ``async def`` -- the library is async-first.

Usage:
    from pg_backup_tool.adapters.base import CommandRunner

    async def do_work(runner: CommandRunner) -> None:
        result = await runner.run("psql", ["-t", "-c", "SELECT 1;"])
        if result.ok:
            print(result.stdout)
"""

from typing import Protocol

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Outcome of one external command invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """True when the process exited with status 0."""
        return self.returncode == 0


class CommandRunner(Protocol):
    """Command execution interface that all runners must implement.

    The runner never raises for a non-zero exit status -- callers inspect
    ``CommandResult.returncode`` and decide whether the failure is fatal or
    degraded.  Tests substitute a fake implementation so no real database
    or PostgreSQL client binaries are required.
    """

    async def run(
        self,
        program: str,
        args: list[str],
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run ``program`` with ``args`` and wait for it to exit.

        Args:
            program: Executable name or path (e.g., ``"pg_dump"``).
            args: Argument list, not shell-quoted.
            env: Extra environment variables merged over the current
                process environment (e.g., ``{"PGPASSWORD": "..."}``).

        Returns:
            ``CommandResult`` with exit status and decoded stdout/stderr.

        Raises:
            OSError: If the executable cannot be started at all.

        Example:
            result = await runner.run(
                "pg_dump",
                ["-h", "localhost", "-F", "d", "-f", "/tmp/out"],
                env={"PGPASSWORD": "secret"},
            )
        """
        ...
