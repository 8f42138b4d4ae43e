"""In-memory ledger.

Keeps records in a dict.  Used by tests and by single-process tools that do
not need the ledger to survive a restart.
"""

from __future__ import annotations

from typing import Any

from db_backups.errors import LedgerError
from db_backups.ledger.base import check_update, status_value
from db_backups.ledger.models import BackupRecord, new_record_id


class InMemoryLedger:
    """``BackupLedger`` implementation backed by a dict."""

    def __init__(self, records: list[BackupRecord] | None = None) -> None:
        self._records: dict[str, BackupRecord] = {r.id: r for r in records or []}

    async def create(self, fields: dict[str, Any]) -> BackupRecord:
        data = dict(fields)
        data.setdefault("id", new_record_id())
        if data["id"] in self._records:
            raise LedgerError(f"Backup {data['id']} already exists")
        record = BackupRecord(**data)
        self._records[record.id] = record
        return record.model_copy(deep=True)

    async def get(self, record_id: str) -> BackupRecord | None:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def list(
        self,
        filters: dict[str, Any] | None = None,
        newest_first: bool = True,
    ) -> list[BackupRecord]:
        matches = [
            r for r in self._records.values()
            if all(self._matches(r, k, v) for k, v in (filters or {}).items())
        ]
        matches.sort(key=lambda r: r.created_at, reverse=newest_first)
        return [r.model_copy(deep=True) for r in matches]

    async def update_by_id(self, record_id: str, fields: dict[str, Any]) -> BackupRecord:
        record = self._records.get(record_id)
        if record is None:
            raise LedgerError(f"Backup {record_id} not found")
        check_update(record, fields)
        updated = record.model_copy(update=fields, deep=True)
        # model_copy(update=...) skips validation; re-validate status enums
        updated = BackupRecord.model_validate(updated.model_dump())
        self._records[record_id] = updated
        return updated.model_copy(deep=True)

    async def delete_by_id(self, record_id: str) -> None:
        if self._records.pop(record_id, None) is None:
            raise LedgerError(f"Backup {record_id} not found")

    @staticmethod
    def _matches(record: BackupRecord, field: str, value: Any) -> bool:
        actual = getattr(record, field, None)
        if field == "status":
            return status_value(actual) == status_value(value)
        return actual == value
