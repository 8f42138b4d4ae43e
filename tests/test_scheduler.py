"""Tests for the scheduled backup trigger."""

import logging
from unittest.mock import AsyncMock

from db_backups.errors import BusyError, CaptureError
from db_backups.ledger.models import BackupKind, BackupStatus
from db_backups.scheduler import run_scheduled_backup


class TestRunScheduledBackup:
    """The trigger returns one status line and never raises."""

    async def test_skips_when_disabled(self, backups, config, cluster):
        config.environment = "production"
        config.auto_backup = False

        result = await run_scheduled_backup(backups, config)

        assert result.startswith("Skipping automatic backup")
        assert cluster.calls == []

    async def test_skips_on_development(self, backups, config, cluster):
        config.auto_backup = True
        config.environment = "development"

        result = await run_scheduled_backup(backups, config)

        assert result == "Skipping automatic backup on development"
        assert cluster.calls == []

    async def test_runs_auto_backup(self, backups, config, ledger):
        config.auto_backup = True
        config.environment = "production"

        result = await run_scheduled_backup(backups, config)

        assert result.startswith("Backup completed successfully")
        [record] = await ledger.list()
        assert record.kind == BackupKind.AUTO.value
        assert record.id in result

    async def test_busy(self, backups, config, ledger):
        config.auto_backup = True
        config.environment = "staging"
        await ledger.create({"status": BackupStatus.PENDING})

        assert await run_scheduled_backup(backups, config) == "Backup is already in progress."

    async def test_failure_message(self, backups, config, cluster):
        config.auto_backup = True
        config.environment = "production"
        cluster.fail_when(lambda args: args[0] == "pg_dump", stderr="disk full")

        result = await run_scheduled_backup(backups, config)

        assert result.startswith("Backup failed: ")
        assert "disk full" in result

    async def test_unexpected_error_is_reported(self, config):
        config.auto_backup = True
        config.environment = "production"
        orchestrator = AsyncMock()
        orchestrator.run.side_effect = RuntimeError("event loop closed")

        result = await run_scheduled_backup(orchestrator, config)

        assert result == "Backup failed: event loop closed"

    async def test_result_is_logged(self, config, caplog):
        config.auto_backup = True
        config.environment = "production"
        orchestrator = AsyncMock()
        orchestrator.run.side_effect = BusyError()

        with caplog.at_level(logging.INFO, logger="db_backups.scheduler"):
            await run_scheduled_backup(orchestrator, config)

        assert "Backup is already in progress." in caplog.text

    async def test_record_error_message(self, config):
        config.auto_backup = True
        config.environment = "production"
        orchestrator = AsyncMock()
        orchestrator.run.side_effect = CaptureError("Backup file not found!", "backup_1")

        assert await run_scheduled_backup(orchestrator, config) == "Backup failed: Backup file not found!"
