"""Exception hierarchy for backup and restore runs.

Fatal errors propagate to the caller and abort the run. Degraded conditions
(WAL listing failures, per-file copy failures, metadata save failures) are
logged by the component that hits them and never surface here.
"""


class BackupToolError(Exception):
    """Base class for all errors raised by pg_backup_tool."""

    pass


class ConfigError(BackupToolError):
    """Raised when the TOML configuration cannot be parsed or validated."""

    pass


class CommandError(BackupToolError):
    """Raised when an external tool exits with a non-zero status.

    Attributes:
        program: Executable name (e.g. ``pg_dump``).
        returncode: Exit status reported by the process.
        stderr: Captured standard error, decoded.
    """

    def __init__(self, program: str, returncode: int, stderr: str = "") -> None:
        self.program = program
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"{program} failed with exit code {returncode}"
        if self.stderr:
            message += f", stderr: {self.stderr}"
        super().__init__(message)


class DumpError(CommandError):
    """pg_dump exited non-zero during a full backup."""

    pass


class PgRestoreError(CommandError):
    """pg_restore exited non-zero during a full restore step."""

    pass


class DatabaseAdminError(CommandError):
    """DROP DATABASE / CREATE DATABASE failed before a full restore step."""

    pass


class BackupDirectoryError(BackupToolError):
    """The backup directory could not be created."""

    pass


class InsufficientSpaceError(BackupToolError):
    """Free disk space is below the configured minimum."""

    pass


class WALPositionError(BackupToolError):
    """Both the current and the legacy WAL position queries failed."""

    pass


class WALRangeError(BackupToolError):
    """pg_waldump could not list the segments for a WAL range."""

    pass


class InvalidMetadataError(BackupToolError):
    """A metadata record violates the full/incremental lineage rules."""

    pass


class AssemblyError(BackupToolError):
    """Split parts could not be concatenated back into the original file."""

    pass


class BackupNotFoundError(BackupToolError):
    """The requested restore target does not exist."""

    pass


class ChainError(BackupToolError):
    """The parent chain of a backup is broken (missing, corrupt, or cyclic)."""

    pass


class RestoreError(BackupToolError):
    """A restore run failed; the message names the failing stage."""

    pass
