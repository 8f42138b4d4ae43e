"""Ledger record models.

A ``BackupRecord`` is created ``pending`` when a backup starts and moves
exactly once to ``success`` or ``error``.  The artifact reference is written
only on the ``pending -> success`` transition.

Usage:
    from db_backups.ledger.models import BackupRecord, BackupStatus, BackupKind

    record = BackupRecord(id="backup_1", status=BackupStatus.PENDING,
                          metadata={"kind": BackupKind.MANUAL.value})
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class BackupStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class BackupKind(str, Enum):
    """What triggered a backup."""

    MANUAL = "manual"
    AUTO = "auto"
    PRE_RESTORE = "pre-restore"


# Fields that may only be written by the pending -> success transition
ARTIFACT_FIELDS = ("artifact_id", "artifact_url")


def new_record_id() -> str:
    """Opaque unique id for a new ledger record."""
    return f"backup_{uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackupRecord(BaseModel):
    """One backup attempt as tracked by the ledger."""

    id: str
    status: BackupStatus = BackupStatus.PENDING
    artifact_id: str | None = None
    artifact_url: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def artifact_ref(self) -> str | None:
        """Reference used to fetch the archive (URL, else id)."""
        return self.artifact_url or self.artifact_id

    @property
    def kind(self) -> str | None:
        return self.metadata.get("kind")

    @property
    def note(self) -> str | None:
        return self.metadata.get("note")

    @property
    def size_label(self) -> str:
        return format_backup_size(
            self.metadata.get("compressed_size"),
            self.metadata.get("uncompressed_size"),
        )


def format_backup_size(size: int | None, original_size: int | None) -> str:
    """Human-readable ``"compressed (~uncompressed)"`` size.

    Example:
        >>> format_backup_size(1_258_291, 8_388_608)
        '1.2MB (~8.0MB)'
    """
    if not size or not original_size:
        return ""

    def _fmt(num_bytes: int) -> str:
        if num_bytes >= 1024 * 1024:
            return f"{num_bytes / (1024 * 1024):.1f}MB"
        return f"{round(num_bytes / 1024)}KB"

    return f"{_fmt(size)} (~{_fmt(original_size)})"
