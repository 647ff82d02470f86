"""Tests for backup metadata model and directory helpers.

Verifies the on-disk JSON format of ``backup_metadata.json``, the lineage
rules for full/incremental records, exclusive metadata writes, and the
backup-directory scan used by the orchestrator, chain resolver and sweeper.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from pg_backup_tool.backup.models import (
    METADATA_FILENAME,
    BackupMetadata,
    BackupType,
    backup_dir_name,
    directory_stats,
    latest_backup_dir,
    list_backup_dirs,
    load_metadata,
    save_metadata,
)
from pg_backup_tool.errors import InvalidMetadataError

TS = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _make_dir(root: Path, name: str, mtime: float) -> Path:
    path = root / name
    path.mkdir()
    os.utime(path, (mtime, mtime))
    return path


# ------------------------------------------------------------------
# BackupType
# ------------------------------------------------------------------


class TestBackupType:
    """BackupType is a closed str enum with directory prefixes."""

    def test_values(self):
        assert [t.value for t in BackupType] == ["full", "incremental"]

    def test_prefix(self):
        assert BackupType.FULL.prefix == "full_"
        assert BackupType.INCREMENTAL.prefix == "incremental_"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            BackupMetadata.model_validate({"type": "differential", "timestamp": TS.isoformat()})


# ------------------------------------------------------------------
# JSON format
# ------------------------------------------------------------------


class TestMetadataJson:
    """backup_metadata.json key names and omission of empty fields."""

    def test_full_omits_empty_optional_keys(self):
        meta = BackupMetadata(type=BackupType.FULL, timestamp=TS, wal_end="0/3000060", size=10, file_count=2)
        data = json.loads(meta.to_json())

        assert data["type"] == "full"
        assert data["wal_end"] == "0/3000060"
        assert data["size"] == 10
        assert data["file_count"] == 2
        assert "parent_backup" not in data
        assert "wal_start" not in data

    def test_incremental_uses_parent_backup_key(self):
        meta = BackupMetadata(
            type=BackupType.INCREMENTAL,
            timestamp=TS,
            parent="full_20240101_000000",
            wal_start="0/1000000",
            wal_end="0/2000000",
        )
        data = json.loads(meta.to_json())

        assert data["parent_backup"] == "full_20240101_000000"
        assert "parent" not in data

    def test_zero_size_is_kept(self):
        meta = BackupMetadata(type=BackupType.FULL, timestamp=TS)
        data = json.loads(meta.to_json())
        assert data["size"] == 0
        assert data["file_count"] == 0

    def test_reads_parent_under_either_key(self):
        for key in ("parent_backup", "parent"):
            meta = BackupMetadata.model_validate(
                {"type": "incremental", "timestamp": TS.isoformat(), key: "full_x"}
            )
            assert meta.parent == "full_x"

    def test_null_fields_read_as_empty(self):
        meta = BackupMetadata.model_validate(
            {"type": "full", "timestamp": TS.isoformat(), "parent_backup": None, "wal_end": None}
        )
        assert meta.parent == ""
        assert meta.wal_end == ""


# ------------------------------------------------------------------
# Lineage rules
# ------------------------------------------------------------------


class TestCheckLineage:
    """Incremental records must carry a parent and both WAL bounds."""

    def test_valid_incremental(self):
        BackupMetadata(
            type=BackupType.INCREMENTAL,
            timestamp=TS,
            parent="full_20240101_000000",
            wal_start="0/1",
            wal_end="0/2",
        ).check_lineage()

    def test_valid_full_without_wal(self):
        BackupMetadata(type=BackupType.FULL, timestamp=TS).check_lineage()

    @pytest.mark.parametrize("missing", ["parent", "wal_start", "wal_end"])
    def test_incremental_missing_field(self, missing):
        fields = {"parent": "full_x", "wal_start": "0/1", "wal_end": "0/2"}
        fields[missing] = ""
        meta = BackupMetadata(type=BackupType.INCREMENTAL, timestamp=TS, **fields)
        with pytest.raises(InvalidMetadataError, match=missing):
            meta.check_lineage()

    def test_full_with_parent_rejected(self):
        meta = BackupMetadata(type=BackupType.FULL, timestamp=TS, parent="full_x")
        with pytest.raises(InvalidMetadataError, match="must not have a parent"):
            meta.check_lineage()


# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------


class TestPersistence:
    """save_metadata / load_metadata."""

    def test_round_trip(self, tmp_path):
        meta = BackupMetadata(type=BackupType.FULL, timestamp=TS, wal_end="0/3000060", size=5, file_count=1)
        path = save_metadata(tmp_path, meta)

        assert path == tmp_path / METADATA_FILENAME
        assert load_metadata(tmp_path) == meta

    def test_never_overwrites(self, tmp_path):
        meta = BackupMetadata(type=BackupType.FULL, timestamp=TS)
        save_metadata(tmp_path, meta)
        with pytest.raises(FileExistsError):
            save_metadata(tmp_path, meta)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_metadata(tmp_path)

    def test_invalid_json(self, tmp_path):
        (tmp_path / METADATA_FILENAME).write_text("{not json")
        with pytest.raises(InvalidMetadataError):
            load_metadata(tmp_path)

    def test_reads_document_written_by_go_tool(self, tmp_path):
        """Documents with RFC 3339 timestamps and parent_backup load unchanged."""
        (tmp_path / METADATA_FILENAME).write_text(json.dumps({
            "type": "incremental",
            "timestamp": "2024-01-02T00:00:00.123456+03:00",
            "parent_backup": "full_20240101_000000",
            "wal_start": "0/1000000",
            "wal_end": "0/2000000",
            "size": 1024,
            "file_count": 3,
        }))
        meta = load_metadata(tmp_path)
        assert meta.type is BackupType.INCREMENTAL
        assert meta.parent == "full_20240101_000000"
        assert meta.size == 1024


# ------------------------------------------------------------------
# Directory helpers
# ------------------------------------------------------------------


class TestDirectoryHelpers:
    """Naming, scanning and size accounting."""

    def test_backup_dir_name(self):
        assert backup_dir_name(BackupType.FULL, TS) == "full_20240102_030405"
        assert backup_dir_name(BackupType.INCREMENTAL, TS) == "incremental_20240102_030405"

    def test_list_backup_dirs_sorted_by_mtime(self, tmp_path):
        b = _make_dir(tmp_path, "incremental_20240102_000000", 2_000)
        a = _make_dir(tmp_path, "full_20240101_000000", 1_000)
        c = _make_dir(tmp_path, "full_20240103_000000", 3_000)

        assert list_backup_dirs(tmp_path) == [a, b, c]
        assert latest_backup_dir(tmp_path) == c

    def test_ignores_unrelated_entries(self, tmp_path):
        _make_dir(tmp_path, "wal_archive", 5_000)
        _make_dir(tmp_path, "temp_full", 5_000)
        (tmp_path / "full_20240101_000000.log").write_text("x")
        full = _make_dir(tmp_path, "full_20240101_000000", 1_000)

        assert list_backup_dirs(tmp_path) == [full]

    def test_missing_root(self, tmp_path):
        assert list_backup_dirs(tmp_path / "nope") == []
        assert latest_backup_dir(tmp_path / "nope") is None

    def test_directory_stats(self, tmp_path):
        (tmp_path / "a.dat").write_bytes(b"12345")
        (tmp_path / "wal").mkdir()
        (tmp_path / "wal" / "seg").write_bytes(b"123")

        assert directory_stats(tmp_path) == (8, 2)
