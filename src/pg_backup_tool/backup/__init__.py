"""Backup side: metadata model, orchestration, WAL collection, splitting, retention.

Usage:
    from pg_backup_tool.backup import BackupOrchestrator, BackupMetadata, BackupType
"""

from pg_backup_tool.backup.collector import IncrementalCollector
from pg_backup_tool.backup.models import (
    BackupMetadata,
    BackupResult,
    BackupType,
    ChainLink,
    load_metadata,
    save_metadata,
)
from pg_backup_tool.backup.orchestrator import BackupOrchestrator
from pg_backup_tool.backup.retention import RetentionSweeper
from pg_backup_tool.backup.splitter import FileSplitter, split_large_files
from pg_backup_tool.backup.wal import WALPositionTracker

__all__ = [
    "BackupMetadata",
    "BackupResult",
    "BackupType",
    "ChainLink",
    "load_metadata",
    "save_metadata",
    "BackupOrchestrator",
    "IncrementalCollector",
    "WALPositionTracker",
    "FileSplitter",
    "split_large_files",
    "RetentionSweeper",
]
