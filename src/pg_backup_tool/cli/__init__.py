"""CLI for PostgreSQL backup and restore runs.

Provides commands to run one backup, restore a backup chain, inspect the
chain of a backup, list backups, and reassemble split files.

Usage:
    pg-backup-tool backup --incremental
    pg-backup-tool backup --full
    pg-backup-tool restore latest --yes
    pg-backup-tool restore incremental_20240102_000000 --no-drop --wal-dest /var/lib/pg/restore_wal
    pg-backup-tool chain latest
    pg-backup-tool list
    pg-backup-tool assemble /var/backups/postgres/full_20240101_000000

Commands:
    backup    - Run one full or incremental backup
    restore   - Restore a backup and its parent chain
    chain     - Show the chain a restore would replay
    list      - List backup directories
    assemble  - Reassemble split files in a directory
"""

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from pg_backup_tool.adapters.subprocess_runner import SubprocessRunner
from pg_backup_tool.backup.models import list_backup_dirs, load_metadata
from pg_backup_tool.backup.orchestrator import BackupOrchestrator
from pg_backup_tool.config.loader import load_config
from pg_backup_tool.config.models import ToolConfig
from pg_backup_tool.errors import BackupToolError
from pg_backup_tool.logging_setup import configure_logging
from pg_backup_tool.restore.assembler import FileAssembler
from pg_backup_tool.restore.chain import build_backup_chain, locate_backup_dir
from pg_backup_tool.restore.orchestrator import RestoreOrchestrator
from pg_backup_tool.storage import check_free_space

console = Console()


def _format_size(size: int) -> str:
    return f"{size / (1 << 20):.2f} MB"


def _load(args: argparse.Namespace) -> ToolConfig | None:
    """Load config and configure logging; prints the error and returns None on failure."""
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        config = load_config(config_path, env_prefix=getattr(args, "env_prefix", ""))
    except (FileNotFoundError, BackupToolError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None

    configure_logging(config.logging, debug=getattr(args, "debug", False))
    return config


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Args:
        args: Parsed arguments with incremental/full flags.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load(args)
    if config is None:
        return 1

    try:
        check_free_space(config.backup.output_dir, config.backup.min_free_space_gb)
    except BackupToolError as e:
        console.print(f"[bold red]x[/bold red] Disk space check failed: {e}")
        return 1

    orchestrator = BackupOrchestrator(config.postgres, config.backup, SubprocessRunner())
    if args.incremental:
        orchestrator.set_incremental_mode(True)
    elif args.full:
        orchestrator.set_incremental_mode(False)

    try:
        result = await orchestrator.create_backup()
    except (OSError, BackupToolError) as e:
        console.print(f"[bold red]x[/bold red] Backup failed: {e}")
        return 1

    meta = result.metadata
    table = Table(title="Backup Complete", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Directory", str(result.directory))
    table.add_row("Type", f"[bold cyan]{meta.type.value}[/bold cyan]")
    if meta.parent:
        table.add_row("Parent", meta.parent)
    table.add_row("WAL range", f"{meta.wal_start or '-'} -> {meta.wal_end or '-'}")
    table.add_row("Size", f"{_format_size(meta.size)} in {meta.file_count} files")
    if result.split_files:
        table.add_row("Split files", ", ".join(result.split_files))
    if result.removed_backups:
        table.add_row("Expired", ", ".join(result.removed_backups))
    if not result.metadata_saved:
        table.add_row("Warning", "[yellow]metadata not saved[/yellow]")
    console.print(table)
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Args:
        args: Parsed arguments with identifier, yes, no_drop, wal_dest.

    Returns:
        0 on success, 1 on failure or cancellation by error.
    """
    config = _load(args)
    if config is None:
        return 1

    settings = config.restore.model_copy()
    if args.no_drop:
        settings.drop_database = False
    if args.wal_dest:
        settings.wal_destination_dir = Path(args.wal_dest)

    target = config.restore_target
    if not args.yes:
        console.print(f"This will restore [bold]{args.identifier}[/bold] into "
                      f"[bold cyan]{target.database}[/bold cyan] on {target.host}:{target.port}")
        if settings.drop_database:
            console.print("  [yellow]WARNING: the target database will be dropped first![/yellow]")
        response = console.input("Continue? [y/N] ")
        if response.lower() not in ["y", "yes"]:
            console.print("Cancelled.")
            return 0

    orchestrator = RestoreOrchestrator(target, settings, config.backup_root, SubprocessRunner())
    try:
        result = await orchestrator.restore(args.identifier)
    except BackupToolError as e:
        console.print(f"[bold red]x[/bold red] Restore failed: {e}")
        return 1

    for step in result.steps:
        detail = f", {step.wal_files_copied} WAL files staged" if step.wal_files_copied else ""
        console.print(
            f"  {step.step}. {step.type.value} [cyan]{step.directory.name}[/cyan]{detail}"
        )
    console.print("[bold green]v[/bold green] Restore complete.")
    return 0


# ============================================================================
# Sync command wrappers (chain, list, assemble read local files only)
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Run one backup.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a backup chain.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_restore(args))


def cmd_chain(args: argparse.Namespace) -> int:
    """Show the chain a restore of ``identifier`` would replay.

    Reads only local metadata files -- no database calls.

    Returns:
        0 on success, 1 if the target or a parent cannot be resolved.
    """
    config = _load(args)
    if config is None:
        return 1

    root = config.backup_root
    try:
        target = locate_backup_dir(args.identifier, root)
        chain = build_backup_chain(target, root)
    except BackupToolError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    table = Table(title=f"Backup Chain for {target.name}", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Directory")
    table.add_column("Type")
    table.add_column("WAL start")
    table.add_column("WAL end")
    for number, link in enumerate(chain, start=1):
        table.add_row(
            str(number),
            link.name,
            link.type.value,
            link.metadata.wal_start or "-",
            link.metadata.wal_end or "-",
        )
    console.print(table)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List backup directories, oldest first.

    Returns:
        0 always (informational command) unless config loading fails.
    """
    config = _load(args)
    if config is None:
        return 1

    dirs = list_backup_dirs(config.backup_root)
    if not dirs:
        console.print(f"[yellow]No backups in {config.backup_root}[/yellow]")
        return 0

    table = Table(title="Backups", show_header=True, header_style="bold")
    table.add_column("Directory")
    table.add_column("Type")
    table.add_column("Parent")
    table.add_column("WAL end")
    table.add_column("Size", justify="right")

    for directory in dirs:
        try:
            meta = load_metadata(directory)
        except (OSError, BackupToolError):
            table.add_row(directory.name, "[red]unreadable[/red]", "", "", "")
            continue
        table.add_row(
            directory.name,
            meta.type.value,
            meta.parent or "-",
            meta.wal_end or "-",
            _format_size(meta.size),
        )

    console.print(table)
    return 0


def cmd_assemble(args: argparse.Namespace) -> int:
    """Reassemble split files under a directory in place.

    Returns:
        0 on success, 1 on failure.
    """
    directory = Path(args.directory)
    if not directory.is_dir():
        console.print(f"[red]Error: not a directory: {directory}[/red]")
        return 1

    try:
        count = FileAssembler().assemble_files(directory)
    except BackupToolError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    console.print(f"[bold green]v[/bold green] Reassembled {count} file(s) in {directory}")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pg-backup-tool",
        description="PostgreSQL full/incremental backup and chain restore",
    )

    parser.add_argument(
        "--config",
        "-c",
        help="Path to TOML config (default: ./pg-backup.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_PGPASSWORD)"
        ),
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser("backup", help="Run one full or incremental backup")
    mode = p_backup.add_mutually_exclusive_group()
    mode.add_argument(
        "--incremental",
        action="store_true",
        help="Try an incremental backup (falls back to full when not possible)",
    )
    mode.add_argument(
        "--full",
        action="store_true",
        help="Force a full backup even if incremental is configured",
    )
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore a backup and its parent chain")
    p_restore.add_argument(
        "identifier",
        help='"latest" or a backup directory (absolute or relative to the backup root)',
    )
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    p_restore.add_argument(
        "--no-drop",
        action="store_true",
        help="Do not drop and recreate the target database before a full step",
    )
    p_restore.add_argument(
        "--wal-dest",
        help="Directory to stage incremental WAL files in for PITR",
    )
    p_restore.set_defaults(func=cmd_restore)

    # chain command
    p_chain = subparsers.add_parser("chain", help="Show the chain a restore would replay")
    p_chain.add_argument("identifier", help='"latest" or a backup directory')
    p_chain.set_defaults(func=cmd_chain)

    # list command
    p_list = subparsers.add_parser("list", help="List backup directories")
    p_list.set_defaults(func=cmd_list)

    # assemble command
    p_assemble = subparsers.add_parser("assemble", help="Reassemble split files in a directory")
    p_assemble.add_argument("directory", help="Directory to scan recursively")
    p_assemble.set_defaults(func=cmd_assemble)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
