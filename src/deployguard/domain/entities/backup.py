"""Backup record entity."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BackupRecord(BaseModel):
    """Metadata of one registry snapshot.

    Attributes:
        timestamp: When the snapshot was taken (UTC).
        filename: Name of the snapshot file inside the backup directory.
        path: Absolute path of the snapshot file.
        size_bytes: Size of the snapshot file.
        entry_count: Number of registry entries in the snapshot, 0 when the
            snapshot could not be parsed.
        comment: Optional caller note, recorded in the audit log only.
    """

    timestamp: datetime
    filename: str
    path: str
    size_bytes: int = Field(default=0, ge=0)
    entry_count: int = Field(default=0, ge=0)
    comment: str | None = None

    model_config = {"frozen": True}
