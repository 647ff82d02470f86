"""pg-backup-tool: PostgreSQL full/incremental backups with chained restore.

Full backups are directory-format ``pg_dump`` runs; incremental backups copy
the archived WAL segments since the previous backup's WAL position and point
at it as their parent.  Restores rebuild the chain from the metadata on disk
and replay it oldest first.

Usage:
    from pg_backup_tool import BackupOrchestrator, RestoreOrchestrator, load_config
    from pg_backup_tool import SubprocessRunner, BackupMetadata, BackupType
"""

__version__ = "0.1.0"

# Adapters
from pg_backup_tool.adapters.base import CommandResult, CommandRunner
from pg_backup_tool.adapters.subprocess_runner import SubprocessRunner

# Config
from pg_backup_tool.config.loader import load_config
from pg_backup_tool.config.models import ToolConfig

# Backup
from pg_backup_tool.backup.models import BackupMetadata, BackupType, ChainLink
from pg_backup_tool.backup.orchestrator import BackupOrchestrator

# Restore
from pg_backup_tool.restore.chain import build_backup_chain, locate_backup_dir
from pg_backup_tool.restore.orchestrator import RestoreOrchestrator

__all__ = [
    # Adapters
    "CommandResult",
    "CommandRunner",
    "SubprocessRunner",
    # Config
    "load_config",
    "ToolConfig",
    # Backup
    "BackupMetadata",
    "BackupType",
    "ChainLink",
    "BackupOrchestrator",
    # Restore
    "RestoreOrchestrator",
    "build_backup_chain",
    "locate_backup_dir",
]
