"""Concurrency guard: at most one pending backup system-wide.

The guard asks the ledger for a ``pending`` record before any
backup-producing operation starts.  Across processes this check-then-act is
best-effort; within one process ``reserve()`` holds an ``asyncio.Lock``
across the check and the record creation.
"""

import asyncio
from typing import Any

from db_backups.errors import BusyError
from db_backups.ledger.base import BackupLedger
from db_backups.ledger.models import BackupRecord, BackupStatus


class ConcurrencyGuard:
    """Rejects new backups while another one is pending."""

    def __init__(self, ledger: BackupLedger) -> None:
        self._ledger = ledger
        self._lock = asyncio.Lock()

    async def check(self) -> None:
        """Raise ``BusyError`` if any record is pending."""
        pending = await self._ledger.list({"status": BackupStatus.PENDING})
        if pending:
            raise BusyError()

    async def reserve(self, fields: dict[str, Any]) -> BackupRecord:
        """Check the guard and create the pending record in one step.

        Raises:
            BusyError: If another backup is pending.  No record is created.
        """
        async with self._lock:
            await self.check()
            return await self._ledger.create({**fields, "status": BackupStatus.PENDING})
