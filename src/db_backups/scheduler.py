"""Scheduled (automatic) backup trigger.

An external scheduler (cron, a job runner) calls ``run_scheduled_backup()``
on the ``backup_schedule`` expression from the configuration.  The trigger
never raises: the outcome is returned as one status line and logged.

Usage:
    from db_backups.scheduler import run_scheduled_backup

    line = await run_scheduled_backup(orchestrator, config)
"""

import logging

from db_backups.backup.orchestrator import BackupOrchestrator
from db_backups.config.models import OrchestratorConfig
from db_backups.errors import BackupError, BusyError
from db_backups.ledger.models import BackupKind

logger = logging.getLogger(__name__)

SKIPPED = "Skipping automatic backup"
BUSY = "Backup is already in progress."
COMPLETED = "Backup completed successfully"


async def run_scheduled_backup(
    orchestrator: BackupOrchestrator,
    config: OrchestratorConfig,
) -> str:
    """Run one automatic backup if enabled and return the status line."""
    if not config.auto_backup:
        result = f"{SKIPPED}: automatic backups are disabled"
    elif config.environment == "development":
        result = f"{SKIPPED} on development"
    else:
        try:
            outcome = await orchestrator.run(kind=BackupKind.AUTO)
            result = f"{COMPLETED} ({outcome.record_id})"
        except BusyError:
            result = BUSY
        except BackupError as e:
            result = f"Backup failed: {e.message}"
        except Exception as e:
            logger.exception("Unexpected error during automatic backup")
            result = f"Backup failed: {e}"

    logger.info(result)
    return result
