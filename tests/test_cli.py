"""Tests for the pg-backup-tool CLI.

Commands run through ``main([...])`` with a temporary config file, the
fake command runner from conftest in place of ``SubprocessRunner``, and a
wide in-memory rich console so table output can be asserted on.
"""

import io
from datetime import datetime, timezone
from pathlib import Path

import pytest
from rich.console import Console

import pg_backup_tool.cli as cli
from conftest import failed
from pg_backup_tool.backup.models import BackupMetadata, BackupType, save_metadata
from pg_backup_tool.cli import build_parser, main
from pg_backup_tool.errors import InsufficientSpaceError

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _quiet_cli(monkeypatch):
    """Capture console output and leave logging handlers untouched."""
    console = Console(file=io.StringIO(), width=200)
    monkeypatch.setattr(cli, "console", console)
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.delenv("PGPASSWORD", raising=False)
    return console


def _output() -> str:
    return cli.console.file.getvalue()


@pytest.fixture
def backup_root(tmp_path) -> Path:
    return tmp_path / "backups"


@pytest.fixture
def config_file(tmp_path, backup_root) -> Path:
    path = tmp_path / "pg-backup.toml"
    path.write_text(
        "[postgres]\n"
        'database = "app"\n'
        "[backup]\n"
        f'output_dir = "{backup_root.as_posix()}"\n'
    )
    return path


@pytest.fixture
def runner(make_runner, monkeypatch):
    fake = make_runner()
    monkeypatch.setattr(cli, "SubprocessRunner", lambda: fake)
    return fake


def _full(root: Path, name: str = "full_20240101_000000") -> Path:
    directory = root / name
    directory.mkdir(parents=True)
    save_metadata(directory, BackupMetadata(type=BackupType.FULL, timestamp=TS, wal_end="0/2"))
    return directory


class TestParser:
    """Argument parsing."""

    def test_backup_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["backup", "--incremental", "--full"])

    def test_global_options(self):
        args = build_parser().parse_args(
            ["--config", "x.toml", "--env-prefix", "APP_", "--debug", "restore", "latest", "-y"]
        )
        assert args.config == "x.toml"
        assert args.env_prefix == "APP_"
        assert args.debug is True
        assert args.identifier == "latest"
        assert args.yes is True
        assert args.func is cli.cmd_restore

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestBackupCommand:
    """pg-backup-tool backup."""

    def test_full_backup(self, config_file, backup_root, runner):
        assert main(["--config", str(config_file), "backup"]) == 0

        dirs = [p.name for p in backup_root.iterdir()]
        assert len(dirs) == 1 and dirs[0].startswith("full_")
        assert "Backup Complete" in _output()

    def test_incremental_after_full(self, config_file, backup_root, runner):
        _full(backup_root)

        assert main(["--config", str(config_file), "backup", "--incremental"]) == 0

        assert any(p.name.startswith("incremental_") for p in backup_root.iterdir())
        assert "incremental" in _output()

    def test_dump_failure(self, config_file, make_runner, monkeypatch):
        fake = make_runner(pg_dump=lambda args: failed("connection refused"))
        monkeypatch.setattr(cli, "SubprocessRunner", lambda: fake)

        assert main(["--config", str(config_file), "backup"]) == 1
        assert "connection refused" in _output()

    def test_insufficient_space(self, config_file, runner, monkeypatch):
        def _no_space(path, min_free_gb):
            raise InsufficientSpaceError("Insufficient disk space: 1 GB available, 10 GB required")

        monkeypatch.setattr(cli, "check_free_space", _no_space)

        assert main(["--config", str(config_file), "backup"]) == 1
        assert "Insufficient disk space" in _output()
        runner.run.assert_not_called()

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "absent.toml"), "backup"]) == 1
        assert "Backup config not found" in _output()


class TestRestoreCommand:
    """pg-backup-tool restore."""

    def test_restore_with_yes(self, config_file, backup_root, runner):
        _full(backup_root)

        assert main(["--config", str(config_file), "restore", "latest", "--yes"]) == 0

        programs = [c.args[0] for c in runner.run.call_args_list]
        assert programs == ["psql", "psql", "pg_restore"]
        assert "Restore complete" in _output()

    def test_no_drop(self, config_file, backup_root, runner):
        _full(backup_root)

        assert main(["--config", str(config_file), "restore", "latest", "-y", "--no-drop"]) == 0

        assert [c.args[0] for c in runner.run.call_args_list] == ["pg_restore"]

    def test_cancelled_at_prompt(self, config_file, backup_root, runner, monkeypatch):
        _full(backup_root)
        monkeypatch.setattr(cli.console, "input", lambda prompt="": "n")

        assert main(["--config", str(config_file), "restore", "latest"]) == 0

        runner.run.assert_not_called()
        assert "Cancelled" in _output()

    def test_failure_names_stage(self, config_file, backup_root, runner):
        assert main(["--config", str(config_file), "restore", "latest", "-y"]) == 1
        assert "failed to locate backup" in _output()


class TestLocalCommands:
    """chain, list and assemble read local files only."""

    def test_chain(self, config_file, backup_root):
        full = _full(backup_root)
        inc = backup_root / "incremental_20240102_000000"
        inc.mkdir()
        save_metadata(
            inc,
            BackupMetadata(
                type=BackupType.INCREMENTAL,
                timestamp=TS,
                parent=full.name,
                wal_start="0/2",
                wal_end="0/3",
            ),
        )

        assert main(["--config", str(config_file), "chain", inc.name]) == 0

        out = _output()
        assert out.index(full.name) < out.rindex(inc.name)
        assert "0/3" in out

    def test_chain_broken(self, config_file, backup_root):
        inc = backup_root / "incremental_20240102_000000"
        inc.mkdir(parents=True)
        save_metadata(
            inc,
            BackupMetadata(
                type=BackupType.INCREMENTAL,
                timestamp=TS,
                parent="full_20240101_000000",
                wal_start="0/2",
                wal_end="0/3",
            ),
        )

        assert main(["--config", str(config_file), "chain", "latest"]) == 1
        assert "Failed to load parent metadata" in _output()

    def test_list(self, config_file, backup_root):
        _full(backup_root)
        (backup_root / "full_20240102_000000").mkdir()

        assert main(["--config", str(config_file), "list"]) == 0

        out = _output()
        assert "full_20240101_000000" in out
        assert "unreadable" in out

    def test_list_empty(self, config_file):
        assert main(["--config", str(config_file), "list"]) == 0
        assert "No backups" in _output()

    def test_assemble(self, tmp_path):
        (tmp_path / "toc.dat.part001").write_bytes(b"ab")
        (tmp_path / "toc.dat.part002").write_bytes(b"cd")

        assert main(["assemble", str(tmp_path)]) == 0

        assert (tmp_path / "toc.dat").read_bytes() == b"abcd"
        assert "Reassembled 1 file(s)" in _output()

    def test_assemble_not_a_directory(self, tmp_path):
        assert main(["assemble", str(tmp_path / "missing")]) == 1
