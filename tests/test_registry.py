"""Tests for the backup registry."""

import os
import time
from datetime import datetime
from pathlib import Path

import pytest

import simplebackup.registry as registry_module
from simplebackup.registry import BackupRecord, BackupRegistry, creation_time, list_backups


class TestListBackups:
    """Tests for BackupRegistry.list_backups."""

    def test_missing_root(self, tmp_path):
        assert list_backups(tmp_path / "missing") == []

    def test_empty_root(self, tmp_path):
        assert list_backups(tmp_path) == []

    def test_only_directories(self, tmp_path):
        (tmp_path / "proj_a").mkdir()
        (tmp_path / "notes.txt").write_text("x")

        records = list_backups(tmp_path)

        assert [r.name for r in records] == ["proj_a"]
        assert records[0].path == tmp_path / "proj_a"
        assert isinstance(records[0].created_at, datetime)

    def test_no_name_filter(self, tmp_path):
        (tmp_path / "plainfolder").mkdir()
        (tmp_path / "in_progress_proj_x").mkdir()

        names = {r.name for r in list_backups(tmp_path)}

        assert names == {"plainfolder", "in_progress_proj_x"}

    def test_newest_first(self, tmp_path, monkeypatch):
        times = {"old_x": 100.0, "mid_x": 200.0, "new_x": 300.0}
        for name in times:
            (tmp_path / name).mkdir()
        monkeypatch.setattr(
            registry_module, "creation_time", lambda path: times[Path(path).name]
        )

        records = BackupRegistry(tmp_path).list_backups()

        assert [r.name for r in records] == ["new_x", "mid_x", "old_x"]
        assert records[0].created_at == datetime.fromtimestamp(300.0)

    def test_ties_keep_name_order(self, tmp_path, monkeypatch):
        for name in ["c_x", "a_x", "b_x"]:
            (tmp_path / name).mkdir()
        monkeypatch.setattr(registry_module, "creation_time", lambda path: 100.0)

        records = BackupRegistry(tmp_path).list_backups()

        assert [r.name for r in records] == ["a_x", "b_x", "c_x"]

    def test_vanished_entry_is_skipped(self, tmp_path, monkeypatch):
        (tmp_path / "gone_x").mkdir()
        (tmp_path / "kept_x").mkdir()

        def fake_creation_time(path):
            if Path(path).name == "gone_x":
                raise FileNotFoundError(path)
            return 1.0

        monkeypatch.setattr(registry_module, "creation_time", fake_creation_time)

        assert [r.name for r in list_backups(tmp_path)] == ["kept_x"]

    @pytest.mark.slow
    def test_real_creation_order(self, tmp_path):
        """Directories created a second apart list newest first."""
        for name in ["first_x", "second_x", "third_x"]:
            (tmp_path / name).mkdir()
            time.sleep(1.05)

        assert [r.name for r in list_backups(tmp_path)] == ["third_x", "second_x", "first_x"]

    def test_rescans_every_call(self, tmp_path):
        registry = BackupRegistry(tmp_path)
        assert registry.list_backups() == []

        (tmp_path / "proj_x").mkdir()

        assert [r.name for r in registry.list_backups()] == ["proj_x"]


class TestBackupRecord:
    """Tests for BackupRecord."""

    def test_display_split(self, tmp_path):
        record = BackupRecord(name="proj_nightly-run", path=tmp_path, created_at=datetime.now())

        source_name, label = record.display

        assert source_name == "proj"
        assert label == "nightly-run"

    def test_get(self, tmp_path):
        (tmp_path / "proj_x").mkdir()
        registry = BackupRegistry(tmp_path)

        assert registry.get("proj_x").path == tmp_path / "proj_x"
        assert registry.get("missing") is None


class TestCreationTime:
    """Tests for creation_time."""

    def test_matches_stat(self, tmp_path):
        stat_info = os.stat(tmp_path)
        expected = getattr(stat_info, "st_birthtime", None) or stat_info.st_ctime

        assert creation_time(tmp_path) == expected

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(OSError):
            creation_time(tmp_path / "missing")
