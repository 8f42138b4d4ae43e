"""Backup ledger: records of backup attempts.

``PostgresLedger`` needs SQLAlchemy with asyncpg; ``InMemoryLedger`` has no
dependencies.

Usage:
    from db_backups.ledger import BackupLedger, InMemoryLedger, PostgresLedger
    from db_backups.ledger import BackupRecord, BackupStatus, BackupKind
"""

from db_backups.ledger.base import BackupLedger, check_update
from db_backups.ledger.memory import InMemoryLedger
from db_backups.ledger.models import (
    BackupKind,
    BackupRecord,
    BackupStatus,
    format_backup_size,
    new_record_id,
)
from db_backups.ledger.postgres import PostgresLedger

__all__ = [
    "BackupLedger",
    "check_update",
    "InMemoryLedger",
    "PostgresLedger",
    "BackupKind",
    "BackupRecord",
    "BackupStatus",
    "format_backup_size",
    "new_record_id",
]
