"""Restore side: split-file assembly, chain resolution, and chain replay.

Usage:
    from pg_backup_tool.restore import RestoreOrchestrator, build_backup_chain
"""

from pg_backup_tool.restore.assembler import FileAssembler, extract_part_number
from pg_backup_tool.restore.chain import build_backup_chain, locate_backup_dir
from pg_backup_tool.restore.orchestrator import (
    RestoreOrchestrator,
    RestoreResult,
    StepResult,
)

__all__ = [
    "FileAssembler",
    "extract_part_number",
    "build_backup_chain",
    "locate_backup_dir",
    "RestoreOrchestrator",
    "RestoreResult",
    "StepResult",
]
