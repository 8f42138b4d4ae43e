"""Service facade for the backup HTTP surface.

Each method implements one endpoint of the admin API as a plain coroutine
returning an ``ApiResponse`` (status code + JSON-ready body), so any web
framework can wrap it in a route handler.

Usage:
    service = BackupService(config, ledger, backups, restorer)
    response = await service.trigger_backup(note="before migration")
    return JSONResponse(response.body, status_code=response.status_code)
"""

import logging
from typing import Any

from pydantic import BaseModel

from db_backups.backup.orchestrator import BackupOrchestrator
from db_backups.config.models import OrchestratorConfig
from db_backups.errors import BackupError, BusyError, RecordError
from db_backups.ledger.base import BackupLedger
from db_backups.restore.models import RestoreOutcome
from db_backups.restore.orchestrator import RestoreOrchestrator

logger = logging.getLogger(__name__)


class ApiResponse(BaseModel):
    """Status code and JSON body of one endpoint call."""

    status_code: int
    body: dict[str, Any]


class BackupService:
    """Endpoint implementations over the ledger and the orchestrators."""

    def __init__(
        self,
        config: OrchestratorConfig,
        ledger: BackupLedger,
        backups: BackupOrchestrator,
        restorer: RestoreOrchestrator,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._backups = backups
        self._restorer = restorer

    async def list_backups(self) -> ApiResponse:
        try:
            records = await self._ledger.list(newest_first=True)
        except Exception as e:
            logger.error(f"Listing backups failed: {e}")
            return ApiResponse(status_code=500, body={"error": f"Unexpected error: {e}"})
        return ApiResponse(
            status_code=200,
            body={"backups": [record.model_dump(mode="json") for record in records]},
        )

    async def trigger_backup(self, note: str | None = None) -> ApiResponse:
        try:
            outcome = await self._backups.run(note=note)
        except BusyError as e:
            return ApiResponse(status_code=400, body={"error": e.message})
        except RecordError as e:
            body = {"id": e.record_id, "error": f"Backup failed: {e.message}"}
            if e.ledger_warning:
                body["warning"] = e.ledger_warning
            return ApiResponse(status_code=500, body=body)
        except Exception as e:
            message = e.message if isinstance(e, BackupError) else str(e)
            return ApiResponse(status_code=500, body={"error": f"Backup failed: {message}"})

        return ApiResponse(
            status_code=200,
            body={
                "id": outcome.record_id,
                "artifact_id": outcome.artifact_id,
                "artifact_url": outcome.artifact_url,
                "message": "Backup completed successfully",
            },
        )

    async def delete_backup(self, record_id: str | None) -> ApiResponse:
        """Remove a ledger record.  The stored artifact is left in place."""
        if not record_id:
            return ApiResponse(status_code=400, body={"error": "'id' is required."})
        try:
            if await self._ledger.get(record_id) is None:
                return ApiResponse(status_code=404, body={"error": f"Backup {record_id} not found."})
            await self._ledger.delete_by_id(record_id)
        except Exception as e:
            return ApiResponse(status_code=500, body={"error": f"Failed to delete backup: {e}"})
        return ApiResponse(status_code=200, body={"id": record_id, "deleted": True})

    async def restore(self, url: str | None, production: bool | None = None) -> ApiResponse:
        if not url:
            return ApiResponse(status_code=400, body={"error": "Backup URL is required"})

        result = await self._restorer.restore(url, production=production)

        if result.ok:
            return ApiResponse(
                status_code=200,
                body={"message": result.message, "retained_database": result.retained_database},
            )
        if result.error_type == BusyError.__name__:
            return ApiResponse(status_code=400, body={"error": result.error})

        body: dict[str, Any] = {"message": result.message, "error": result.error}
        if result.outcome == RestoreOutcome.ROLLED_BACK:
            body["rollback"] = "successful"
        elif result.outcome == RestoreOutcome.UNRECOVERABLE:
            body["rollback"] = "failed"
            if result.rollback_error:
                body["rollback_error"] = result.rollback_error
            if result.manual_recovery:
                body["manual_recovery"] = result.manual_recovery
        return ApiResponse(status_code=500, body=body)

    async def update_metadata(self, record_id: str | None, metadata: Any) -> ApiResponse:
        if not record_id or not isinstance(metadata, dict):
            return ApiResponse(
                status_code=400,
                body={"error": "'id' and full 'metadata' object are required."},
            )
        try:
            if await self._ledger.get(record_id) is None:
                return ApiResponse(status_code=404, body={"error": f"Backup {record_id} not found."})
            await self._ledger.update_by_id(record_id, {"metadata": metadata})
        except Exception as e:
            return ApiResponse(status_code=500, body={"error": f"Failed to update metadata: {e}"})
        return ApiResponse(status_code=200, body={"message": "Metadata updated successfully."})

    async def auto_status(self) -> ApiResponse:
        return ApiResponse(
            status_code=200,
            body={"status": self._config.auto_backup, "schedule": self._config.backup_schedule},
        )
