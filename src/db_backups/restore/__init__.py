"""Safe-swap restore of snapshots into the live database.

Usage:
    from db_backups.restore import RestoreOrchestrator, RestoreOutcome
"""

from db_backups.restore.models import RestoreAttempt, RestoreOutcome, RestoreResult
from db_backups.restore.orchestrator import RestoreOrchestrator

__all__ = ["RestoreAttempt", "RestoreOrchestrator", "RestoreOutcome", "RestoreResult"]
