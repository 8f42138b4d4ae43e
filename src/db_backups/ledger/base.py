"""Backup ledger protocol.

Defines the ``BackupLedger`` Protocol every ledger implements, and
``check_update()``, the transition rules both implementations enforce.

Usage:
    from db_backups.ledger.base import BackupLedger

    async def pending(ledger: BackupLedger) -> list:
        return await ledger.list({"status": "pending"})
"""

from __future__ import annotations

from typing import Any, Protocol

from db_backups.errors import LedgerError
from db_backups.ledger.models import ARTIFACT_FIELDS, BackupRecord, BackupStatus

UPDATABLE_FIELDS = {"status", "artifact_id", "artifact_url", "metadata"}


class BackupLedger(Protocol):
    """Persisted record of backup attempts.

    All methods are async -- callers must ``await`` every operation.
    """

    async def create(self, fields: dict[str, Any]) -> BackupRecord:
        """Create a record and return it with its assigned id."""
        ...

    async def get(self, record_id: str) -> BackupRecord | None:
        """Return one record, or None if it does not exist."""
        ...

    async def list(
        self,
        filters: dict[str, Any] | None = None,
        newest_first: bool = True,
    ) -> list[BackupRecord]:
        """Records matching every field=value filter, ordered by creation time."""
        ...

    async def update_by_id(self, record_id: str, fields: dict[str, Any]) -> BackupRecord:
        """Update one record and return it.

        Raises:
            LedgerError: If the record does not exist or the update breaks
                the lifecycle rules (see ``check_update``).
        """
        ...

    async def delete_by_id(self, record_id: str) -> None:
        """Delete one record.

        Raises:
            LedgerError: If the record does not exist.
        """
        ...


def status_value(value: Any) -> str:
    """Plain string for a status given as enum or str."""
    return value.value if isinstance(value, BackupStatus) else str(value)


def check_update(record: BackupRecord, fields: dict[str, Any]) -> None:
    """Validate an update against the record lifecycle.

    - Only ``status``, ``artifact_id``, ``artifact_url`` and ``metadata``
      may be updated.
    - Status moves only ``pending -> success | error``.
    - Artifact fields are written only together with the move to ``success``
      and never changed afterwards.
    - Metadata may be replaced at any time.

    Raises:
        LedgerError: If the update is not allowed.
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise LedgerError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    new_status = fields.get("status")
    if new_status is not None:
        new_status = status_value(new_status)
        if new_status not in (BackupStatus.SUCCESS.value, BackupStatus.ERROR.value):
            raise LedgerError(f"Invalid status transition to '{new_status}'")
        if record.status != BackupStatus.PENDING:
            raise LedgerError(
                f"Backup {record.id} is already {record.status.value}; "
                "finished records are immutable"
            )

    touches_artifact = any(f in fields for f in ARTIFACT_FIELDS)
    if touches_artifact and new_status != BackupStatus.SUCCESS.value:
        raise LedgerError(
            f"Artifact reference of backup {record.id} can only be set "
            "when it transitions to success"
        )
