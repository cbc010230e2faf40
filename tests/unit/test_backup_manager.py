"""Unit tests for the backup manager."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from deployguard.engine.backup.manager import BackupManager, count_entries, parse_backup_timestamp
from deployguard.shared.exceptions import BackupError, BackupFailure, NotFoundError


def _write_registry(path: Path, entries: dict) -> bytes:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps({"mcpServers": entries}).encode()
    path.write_bytes(data)
    return data


def test_parse_backup_timestamp() -> None:
    stamp = parse_backup_timestamp("registry-backup-20250102T030405123456Z-007.json")
    assert stamp == datetime(2025, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)
    assert parse_backup_timestamp("notes.json") is None


def test_count_entries() -> None:
    assert count_entries(b'{"mcpServers": {"a": {}, "b": {}}}', "mcpServers") == 2
    assert count_entries(b"garbage", "mcpServers") == 0
    assert count_entries(b'{"mcpServers": []}', "mcpServers") == 0


def test_max_backups_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        BackupManager(tmp_path / "mcp.json", tmp_path / "b", max_backups=0)


class TestBackupManager:
    @pytest.mark.asyncio
    async def test_create_backup_copies_registry(
        self, backups: BackupManager, registry_path: Path, backup_dir: Path
    ) -> None:
        data = _write_registry(registry_path, {"a": {"command": "node"}})
        started = datetime.now(timezone.utc)

        record = await backups.create_backup(comment="manual")

        assert Path(record.path).read_bytes() == data
        assert Path(record.path).parent == backup_dir
        assert record.entry_count == 1
        assert record.size_bytes == len(data)
        assert record.comment == "manual"
        assert record.timestamp >= started.replace(microsecond=0)

    @pytest.mark.asyncio
    async def test_missing_registry_fails(self, backups: BackupManager) -> None:
        with pytest.raises(BackupFailure):
            await backups.create_backup()

    @pytest.mark.asyncio
    async def test_unwritable_backup_dir_fails(self, tmp_path: Path, registry_path: Path) -> None:
        _write_registry(registry_path, {})
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        manager = BackupManager(registry_path, blocker / "backups")

        with pytest.raises(BackupFailure):
            await manager.create_backup()

    @pytest.mark.asyncio
    async def test_retention_evicts_oldest(self, backups: BackupManager, registry_path: Path) -> None:
        _write_registry(registry_path, {})
        created = [await backups.create_backup() for _ in range(backups.max_backups + 1)]

        listed = await backups.list_backups()

        assert len(listed) == backups.max_backups
        names = [r.filename for r in listed]
        assert created[0].filename not in names
        assert names == [r.filename for r in reversed(created[1:])]

    @pytest.mark.asyncio
    async def test_names_are_unique_and_sortable(self, backups: BackupManager, registry_path: Path) -> None:
        _write_registry(registry_path, {})
        first = await backups.create_backup()
        second = await backups.create_backup()
        assert first.filename < second.filename

    @pytest.mark.asyncio
    async def test_listing_tolerates_corrupt_backups(
        self, backups: BackupManager, registry_path: Path, backup_dir: Path
    ) -> None:
        _write_registry(registry_path, {"a": {"command": "node"}})
        await backups.create_backup()
        corrupt = backup_dir / "registry-backup-20200101T000000000000Z-000.json"
        corrupt.write_text("not json")
        (backup_dir / "unrelated.txt").write_text("ignored")

        listed = await backups.list_backups()

        assert [r.entry_count for r in listed] == [1, 0]
        assert listed[-1].filename == corrupt.name

    @pytest.mark.asyncio
    async def test_list_without_directory(self, backups: BackupManager) -> None:
        assert await backups.list_backups() == []

    @pytest.mark.asyncio
    async def test_restore_takes_pre_restore_backup(self, backups: BackupManager, registry_path: Path) -> None:
        original = _write_registry(registry_path, {"a": {"command": "node"}})
        snapshot = await backups.create_backup()
        current = _write_registry(registry_path, {"b": {"command": "python"}})

        pre_restore = await backups.restore_from_backup(snapshot.filename)

        assert registry_path.read_bytes() == original
        assert pre_restore is not None
        assert Path(pre_restore.path).read_bytes() == current
        assert pre_restore.comment == f"pre-restore of {snapshot.filename}"

    @pytest.mark.asyncio
    async def test_restore_when_registry_is_missing(self, backups: BackupManager, registry_path: Path) -> None:
        original = _write_registry(registry_path, {"a": {"command": "node"}})
        snapshot = await backups.create_backup()
        registry_path.unlink()

        assert await backups.restore_from_backup(snapshot.filename) is None
        assert registry_path.read_bytes() == original

    @pytest.mark.asyncio
    async def test_restore_survives_eviction_of_its_source(self, tmp_path: Path, registry_path: Path) -> None:
        manager = BackupManager(registry_path, tmp_path / "single", max_backups=1)
        original = _write_registry(registry_path, {"a": {"command": "node"}})
        snapshot = await manager.create_backup()
        _write_registry(registry_path, {})

        await manager.restore_from_backup(snapshot.filename)

        assert registry_path.read_bytes() == original

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["missing.json", "../mcp.json", "", "sub/x.json"])
    async def test_restore_unknown_backup(self, backups: BackupManager, registry_path: Path, name: str) -> None:
        before = _write_registry(registry_path, {"a": {"command": "node"}})

        with pytest.raises(NotFoundError):
            await backups.restore_from_backup(name)
        assert registry_path.read_bytes() == before

    @pytest.mark.asyncio
    async def test_restore_rejects_non_json_backup(
        self, backups: BackupManager, registry_path: Path, backup_dir: Path
    ) -> None:
        before = _write_registry(registry_path, {})
        backup_dir.mkdir(parents=True)
        (backup_dir / "registry-backup-20200101T000000000000Z-000.json").write_text("[1, 2]")

        with pytest.raises(BackupError):
            await backups.restore_from_backup("registry-backup-20200101T000000000000Z-000.json")
        assert registry_path.read_bytes() == before
