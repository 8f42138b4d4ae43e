"""db-backups: PostgreSQL backup and safe-restore orchestration.

Takes compressed snapshots of a live database, tracks them in a ledger, and
restores them through a scratch-database swap that keeps the original data
recoverable at every step.

Usage:
    from db_backups import load_config, build_components

    components = build_components(load_config())
    outcome = await components.backups.run(note="before upgrade")
    result = await components.restorer.restore(outcome.artifact_url)
"""

__version__ = "0.1.0"

# Config
from db_backups.config.loader import load_config
from db_backups.config.models import OrchestratorConfig, StoreConfig

# Errors
from db_backups.errors import (
    BackupError,
    BusyError,
    CriticalManualInterventionError,
    RestoreError,
    RollbackFailedError,
)

# Ledger
from db_backups.ledger import BackupKind, BackupRecord, BackupStatus, InMemoryLedger, PostgresLedger

# Orchestrators
from db_backups.backup import BackupOrchestrator, BackupOutcome, ConcurrencyGuard
from db_backups.restore import RestoreOrchestrator, RestoreOutcome, RestoreResult

# Wiring
from db_backups.factory import Components, build_components
from db_backups.scheduler import run_scheduled_backup
from db_backups.service import ApiResponse, BackupService

__all__ = [
    # Config
    "load_config",
    "OrchestratorConfig",
    "StoreConfig",
    # Errors
    "BackupError",
    "BusyError",
    "CriticalManualInterventionError",
    "RestoreError",
    "RollbackFailedError",
    # Ledger
    "BackupKind",
    "BackupRecord",
    "BackupStatus",
    "InMemoryLedger",
    "PostgresLedger",
    # Orchestrators
    "BackupOrchestrator",
    "BackupOutcome",
    "ConcurrencyGuard",
    "RestoreOrchestrator",
    "RestoreOutcome",
    "RestoreResult",
    # Wiring
    "Components",
    "build_components",
    "run_scheduled_backup",
    "ApiResponse",
    "BackupService",
]
