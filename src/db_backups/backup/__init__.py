"""Backup orchestration: concurrency guard and backup lifecycle.

Usage:
    from db_backups.backup import BackupOrchestrator, ConcurrencyGuard, BackupOutcome
"""

from db_backups.backup.guard import ConcurrencyGuard
from db_backups.backup.models import BackupOutcome
from db_backups.backup.orchestrator import BackupOrchestrator

__all__ = ["BackupOrchestrator", "BackupOutcome", "ConcurrencyGuard"]
