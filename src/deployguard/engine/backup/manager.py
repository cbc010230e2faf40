"""Backup manager -- timestamped snapshots of the registry file.

Snapshots are append-only: each backup gets a fresh, lexicographically
sortable name and is never overwritten.  Only retention eviction (oldest
first) removes them, and a failed eviction is logged without failing the
backup that triggered it.
"""
from __future__ import annotations

import asyncio
import json
import re
from datetime import datetime, timezone
from pathlib import Path

import structlog

from deployguard.domain.entities.backup import BackupRecord
from deployguard.infrastructure.logging import audit_log
from deployguard.shared.exceptions import BackupError, BackupFailure, NotFoundError
from deployguard.shared.fileio import atomic_write_bytes

logger = structlog.get_logger(__name__)

BACKUP_PREFIX = "registry-backup-"
_STAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"
_BACKUP_NAME = re.compile(r"^registry-backup-(\d{8}T\d{12}Z)-(\d{3})\.json$")
_MAX_SEQUENCE = 1000


def parse_backup_timestamp(filename: str) -> datetime | None:
    match = _BACKUP_NAME.match(filename)
    if match is None:
        return None
    return datetime.strptime(match.group(1), _STAMP_FORMAT).replace(tzinfo=timezone.utc)


def count_entries(data: bytes, registry_key: str) -> int:
    """Entry count of a registry snapshot, 0 when it cannot be parsed."""
    try:
        parsed = json.loads(data)
    except ValueError:
        return 0
    if not isinstance(parsed, dict) or not isinstance(parsed.get(registry_key), dict):
        return 0
    return len(parsed[registry_key])


class BackupManager:
    """Creates, lists, prunes and restores registry snapshots.

    Args:
        registry_path: The live registry file.
        backup_dir: Directory owned exclusively by this manager.
        max_backups: Retention cap.
        registry_key: Top-level key used to count entries.
    """

    def __init__(
        self,
        registry_path: Path,
        backup_dir: Path,
        max_backups: int = 10,
        registry_key: str = "mcpServers",
    ) -> None:
        if max_backups < 1:
            raise ValueError("max_backups must be at least 1")
        self.registry_path = registry_path
        self.backup_dir = backup_dir
        self.max_backups = max_backups
        self.registry_key = registry_key

    # -- helpers -------------------------------------------------------------

    def _backup_files(self) -> list[Path]:
        if not self.backup_dir.is_dir():
            return []
        return sorted(p for p in self.backup_dir.iterdir() if p.is_file() and _BACKUP_NAME.match(p.name))

    def _claim_name(self, now: datetime) -> Path:
        stamp = now.strftime(_STAMP_FORMAT)
        for seq in range(_MAX_SEQUENCE):
            candidate = self.backup_dir / f"{BACKUP_PREFIX}{stamp}-{seq:03d}.json"
            try:
                # Exclusive create so concurrent writers never share a name.
                candidate.touch(exist_ok=False)
            except FileExistsError:
                continue
            return candidate
        raise BackupFailure(f"No free backup name for timestamp {stamp}", context={"backup_dir": str(self.backup_dir)})

    def _create_sync(self) -> tuple[BackupRecord, int]:
        if not self.registry_path.is_file():
            raise BackupFailure(
                "Registry file does not exist; there is nothing to back up",
                context={"registry_path": str(self.registry_path)},
            )
        target: Path | None = None
        try:
            data = self.registry_path.read_bytes()
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            now = datetime.now(timezone.utc)
            target = self._claim_name(now)
            atomic_write_bytes(target, data)
        except OSError as exc:
            if target is not None:
                target.unlink(missing_ok=True)
            raise BackupFailure(
                f"Unable to write registry backup: {exc}",
                context={"registry_path": str(self.registry_path), "backup_dir": str(self.backup_dir)},
            ) from exc
        record = BackupRecord(
            timestamp=now,
            filename=target.name,
            path=str(target),
            size_bytes=len(data),
            entry_count=count_entries(data, self.registry_key),
        )
        return record, self._evict_sync()

    def _evict_sync(self) -> int:
        files = self._backup_files()
        excess = files[: max(0, len(files) - self.max_backups)]
        evicted = 0
        for path in excess:
            try:
                path.unlink()
                evicted += 1
            except OSError as exc:
                logger.warning("backup_eviction_failed", path=str(path), error=str(exc))
        return evicted

    def _record_for(self, path: Path) -> BackupRecord:
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.warning("backup_unreadable", path=str(path), error=str(exc))
            data = b""
        timestamp = parse_backup_timestamp(path.name) or datetime.fromtimestamp(path.stat().st_mtime, timezone.utc)
        return BackupRecord(
            timestamp=timestamp,
            filename=path.name,
            path=str(path),
            size_bytes=len(data),
            entry_count=count_entries(data, self.registry_key),
        )

    # -- public API ----------------------------------------------------------

    async def create_backup(self, comment: str | None = None) -> BackupRecord:
        """Snapshot the live registry file, then enforce the retention cap.

        Raises:
            BackupFailure: The registry file is missing or the copy failed.
        """
        record, evicted = await asyncio.to_thread(self._create_sync)
        if comment:
            record = record.model_copy(update={"comment": comment})
        logger.info(
            "backup_created",
            filename=record.filename,
            size_bytes=record.size_bytes,
            entry_count=record.entry_count,
            evicted=evicted,
        )
        audit_log("backup", filename=record.filename, entry_count=record.entry_count, comment=comment)
        return record

    async def list_backups(self) -> list[BackupRecord]:
        """Return every snapshot, newest first.  Corrupt snapshots report 0 entries."""

        def _list() -> list[BackupRecord]:
            return [self._record_for(p) for p in reversed(self._backup_files())]

        return await asyncio.to_thread(_list)

    def resolve(self, name: str) -> Path:
        """Return the path of backup *name*.

        Raises:
            NotFoundError: *name* is not a plain file name or does not exist.
        """
        if not name or name in {".", ".."} or "/" in name or "\\" in name or Path(name).name != name:
            raise NotFoundError(f"Invalid backup name: {name!r}", context={"backup": name})
        path = self.backup_dir / name
        if not path.is_file():
            raise NotFoundError(
                f"Backup '{name}' not found; list available backups first",
                context={"backup": name, "backup_dir": str(self.backup_dir)},
            )
        return path

    async def restore_from_backup(self, name: str) -> BackupRecord | None:
        """Overwrite the live registry with backup *name*.

        The current registry, when it exists, is snapshotted first so the
        restore itself can be undone.  Returns that pre-restore snapshot.

        Raises:
            NotFoundError: The backup does not exist.
            BackupError: The backup is not a JSON object.
            BackupFailure: The pre-restore snapshot could not be taken.
        """
        path = self.resolve(name)
        data = await asyncio.to_thread(path.read_bytes)
        try:
            parsed = json.loads(data)
        except ValueError as exc:
            raise BackupError(f"Backup '{name}' is not valid JSON", context={"backup": name}) from exc
        if not isinstance(parsed, dict):
            raise BackupError(f"Backup '{name}' is not a JSON object", context={"backup": name})

        pre_restore: BackupRecord | None = None
        if self.registry_path.is_file():
            pre_restore = await self.create_backup(comment=f"pre-restore of {name}")

        await asyncio.to_thread(atomic_write_bytes, self.registry_path, data)
        logger.info(
            "registry_restored",
            backup=name,
            pre_restore_backup=pre_restore.filename if pre_restore else None,
        )
        audit_log("restore", backup=name, pre_restore_backup=pre_restore.filename if pre_restore else None)
        return pre_restore
