"""Restore orchestrator: the safe-swap protocol.

Replaces the live database with the contents of a snapshot without ever
losing the original data:

    1. safety backup (production only)     6. apply incoming dump to scratch
    2. materialize the artifact            7. dump the ledger table
    3. resolve the maintenance database    8. swap (terminate, rename x2)
    4. safety dump of the live database    9. carry the ledger over
    5. create the scratch database        10. cleanup

Failures before the swap leave the live database untouched.  Failures after
the swap has begun roll back from the safety dump; only a failed rollback
(or a failed emergency rename-back) requires manual intervention.

``restore()`` never raises for protocol failures: every outcome is reported
as a ``RestoreResult``.

Usage:
    from db_backups.restore.orchestrator import RestoreOrchestrator

    restorer = RestoreOrchestrator(config, tools, store, backups)
    result = await restorer.restore("file:///var/backups/db_backup_2024.zip")
    if not result.ok:
        print(result.outcome, result.error, result.manual_recovery)
"""

import asyncio
import logging
import time
from pathlib import Path

from db_backups.backup.orchestrator import BackupOrchestrator
from db_backups.commands.postgres import PostgresTools
from db_backups.config.models import OrchestratorConfig
from db_backups.errors import (
    ArtifactFetchError,
    BackupError,
    BusyError,
    CommandError,
    CorruptSnapshotError,
    CriticalManualInterventionError,
    RestoreError,
    RollbackFailedError,
    SafetyBackupError,
    SwapError,
)
from db_backups.ledger.models import BackupKind
from db_backups.restore.models import RestoreAttempt, RestoreOutcome, RestoreResult
from db_backups.snapshot.codec import materialize_dump
from db_backups.store.base import ArtifactStore
from db_backups.workdir import cleanup_workdir, make_workdir

logger = logging.getLogger(__name__)

SAFETY_DUMP_FILENAME = "original_db_backup.sql"
LEDGER_DUMP_FILENAME = "backup_records.sql"
UNRECOGNIZED_PARAMETER = "unrecognized configuration parameter"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class RestoreOrchestrator:
    """Restores snapshots into the live database with automatic rollback.

    Args:
        config: Orchestrator configuration.
        tools: PostgreSQL client tools for the live server.
        store: Artifact store holding the snapshots.
        backups: Backup orchestrator used for the production safety backup.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        tools: PostgresTools,
        store: ArtifactStore,
        backups: BackupOrchestrator | None = None,
    ) -> None:
        self._config = config
        self._tools = tools
        self._store = store
        self._backups = backups

    @property
    def retained_prefix(self) -> str:
        return f"{self._config.db_name}_backup_"

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def restore(self, artifact_ref: str, production: bool | None = None) -> RestoreResult:
        """Replace the live database with the snapshot at ``artifact_ref``.

        Args:
            artifact_ref: Store key or URL of the snapshot archive.
            production: Take a pre-restore safety backup first.  Defaults to
                the configured environment.

        Returns:
            RestoreResult describing the state the live database was left in.
        """
        if production is None:
            production = self._config.production

        db = self._config.db_name
        try:
            workdir = make_workdir("db-restore-", self._config.work_dir)
        except OSError as e:
            error = RestoreError(f"Could not create working directory: {e}", step="workdir")
            return self._failed(error, RestoreOutcome.UNCHANGED, None)

        attempt = RestoreAttempt(workdir=workdir, stamp=_epoch_millis())
        safety_backup_id: str | None = None
        keep: list[Path] = []

        logger.info(f"Starting safe restore of {db} from {artifact_ref}")
        try:
            if production:
                safety_backup_id = await self._safety_backup()

            incoming = await self._materialize(artifact_ref, attempt)
            attempt.maintenance_db = await self._resolve_maintenance()
            await self._safety_dump(attempt)
            await self._create_scratch(attempt)
            await self._load_scratch(attempt, incoming)
            ledger_script, ledger_dumped = await self._dump_ledger(attempt)

            retained = await self._swap(attempt)
            ledger_restored = await self._carry_over_ledger(ledger_script) and ledger_dumped

            logger.info(f"Restore of {db} completed; original kept as {retained}")
            return RestoreResult(
                outcome=RestoreOutcome.SUCCEEDED,
                message=(
                    f"Database {db} has been safely restored. "
                    f"Backup database {retained} is preserved for safety."
                ),
                database=db,
                retained_database=retained,
                safety_backup_id=safety_backup_id,
                ledger_restored=ledger_restored,
            )

        except CriticalManualInterventionError as e:
            logger.critical(e.message)
            return RestoreResult(
                outcome=RestoreOutcome.UNRECOVERABLE,
                message="CRITICAL: Database rename failed and rollback failed. Manual intervention required.",
                database=db,
                retained_database=e.retained_db,
                safety_backup_id=safety_backup_id,
                failed_step=e.step,
                error=e.message,
                error_type=type(e).__name__,
                manual_recovery=(
                    f'Rename "{e.retained_db}" back to "{e.live_db}"; '
                    f'the restored copy is in "{e.scratch_db}".'
                ),
            )

        except SwapError as e:
            if e.recovered:
                await self._drop_scratch(attempt)
                return self._failed(e, RestoreOutcome.ROLLED_BACK, safety_backup_id)
            return await self._roll_back(attempt, e, safety_backup_id, keep)

        except Exception as e:
            if not isinstance(e, BackupError):
                logger.exception(f"Unexpected error during restore of {db}")
            if attempt.swap_started and attempt.rollback_armed:
                return await self._roll_back(attempt, e, safety_backup_id, keep)
            await self._drop_scratch(attempt)
            return self._failed(e, RestoreOutcome.UNCHANGED, safety_backup_id)

        finally:
            cleanup_workdir(attempt.workdir, keep=keep)

    def _failed(
        self,
        error: Exception,
        outcome: RestoreOutcome,
        safety_backup_id: str | None,
        **extra,
    ) -> RestoreResult:
        message = {
            RestoreOutcome.UNCHANGED: "An error occurred during the restore process; the database was not changed.",
            RestoreOutcome.ROLLED_BACK: "Restore failed but database has been rolled back to original state successfully.",
            RestoreOutcome.UNRECOVERABLE: "CRITICAL: Restore failed and rollback failed. Manual intervention required.",
        }[outcome]
        logger.error(f"Restore failed ({outcome.value}): {error}")
        return RestoreResult(
            outcome=outcome,
            message=message,
            database=self._config.db_name,
            safety_backup_id=safety_backup_id,
            failed_step=getattr(error, "step", None),
            error=getattr(error, "message", None) or str(error),
            error_type=type(error).__name__,
            **extra,
        )

    # ------------------------------------------------------------------
    # Steps 1-7: nothing destructive happens here
    # ------------------------------------------------------------------

    async def _safety_backup(self) -> str:
        """Step 1: full backup tagged ``pre-restore``."""
        if self._backups is None:
            raise SafetyBackupError(
                "Production restore requires a backup orchestrator", step="safety_backup"
            )
        try:
            outcome = await self._backups.run(kind=BackupKind.PRE_RESTORE)
        except BusyError:
            raise
        except BackupError as e:
            raise SafetyBackupError(
                f"Error occurred trying to take a safe backup: {e.message}", step="safety_backup"
            ) from e
        logger.info(f"Pre-restore backup {outcome.record_id} stored at {outcome.artifact_url}")
        return outcome.record_id

    async def _materialize(self, artifact_ref: str, attempt: RestoreAttempt) -> Path:
        """Step 2: fetch the archive and extract its dump."""
        try:
            data = await self._store.get(artifact_ref)
        except Exception as e:
            raise ArtifactFetchError(
                f"Could not fetch backup {artifact_ref}: {e}", step="materialize"
            ) from e

        incoming_dir = attempt.workdir / "incoming"
        incoming_dir.mkdir()
        dump = await asyncio.to_thread(materialize_dump, data, incoming_dir)
        logger.info(f"Backup extracted to {dump}")
        return dump

    async def _resolve_maintenance(self) -> str:
        """Step 3: database used for DDL, created on first use."""
        maintenance = self._config.maintenance_db
        fallback = self._config.fallback_db
        try:
            if not await self._tools.database_exists(fallback, maintenance):
                logger.info(f"Creating maintenance database {maintenance}")
                await self._tools.create_database(fallback, maintenance)
        except CommandError as e:
            logger.warning(f"Could not check/create {maintenance}, using {fallback}: {e.message}")
            return fallback
        return maintenance

    async def _safety_dump(self, attempt: RestoreAttempt) -> None:
        """Step 4: full dump of the live database; arms the rollback."""
        path = attempt.workdir / SAFETY_DUMP_FILENAME
        try:
            await self._tools.dump_database(self._config.db_name, path)
        except CommandError as e:
            raise SafetyBackupError(
                f"Cannot proceed without rollback protection: {e.message}", step="safety_dump"
            ) from e
        attempt.safety_dump_path = path
        attempt.rollback_armed = True
        logger.info("Safety dump created; rollback armed")

    async def _create_scratch(self, attempt: RestoreAttempt) -> None:
        """Step 5."""
        name = f"{self._config.db_name}_temp_{attempt.stamp}"
        try:
            await self._tools.create_database(attempt.maintenance_db, name)
        except CommandError as e:
            raise RestoreError(
                f"Failed to create temporary database {name}: {e.message}", step="create_scratch"
            ) from e
        attempt.scratch_db = name
        logger.info(f"Temporary database {name} created")

    async def _load_scratch(self, attempt: RestoreAttempt, dump: Path) -> None:
        """Step 6: the snapshot must apply cleanly before anything is swapped."""
        try:
            await self._tools.apply_script(attempt.scratch_db, dump, stop_on_error=True)
        except CommandError as e:
            raise CorruptSnapshotError(
                f"Backup file is corrupted or incompatible: {e.message}", step="load_scratch"
            ) from e
        logger.info(f"Backup applied to {attempt.scratch_db}")

    async def _dump_ledger(self, attempt: RestoreAttempt) -> tuple[Path, bool]:
        """Step 7: returns the script path and whether a real dump was taken."""
        table = self._config.ledger_table
        path = attempt.workdir / LEDGER_DUMP_FILENAME
        try:
            await self._tools.dump_table(self._config.db_name, table, path)
            return path, True
        except CommandError as e:
            logger.warning(f"Failed to dump {table} table (it might not exist): {e.message}")
        try:
            path.write_text(f"-- No {table} table found\n")
        except OSError as e:
            raise RestoreError(f"Could not write {path}: {e}", step="dump_ledger") from e
        return path, False

    async def _drop_scratch(self, attempt: RestoreAttempt) -> None:
        if not attempt.scratch_db:
            return
        via = attempt.maintenance_db or self._config.fallback_db
        try:
            await self._tools.drop_database(via, attempt.scratch_db)
            logger.info(f"Dropped temporary database {attempt.scratch_db}")
            attempt.scratch_db = None
        except CommandError as e:
            logger.warning(f"Could not drop temporary database {attempt.scratch_db}: {e.message}")

    # ------------------------------------------------------------------
    # Steps 8-9: the swap
    # ------------------------------------------------------------------

    async def _swap(self, attempt: RestoreAttempt) -> str:
        """Step 8: move the scratch database into the live name.

        Raises:
            SwapError: The first rename failed, or the second failed and the
                original was renamed back (``recovered=True``).
            CriticalManualInterventionError: The second rename and the
                rename-back both failed.
        """
        db = self._config.db_name
        via = attempt.maintenance_db
        scratch = attempt.scratch_db
        retained = f"{db}_backup_{attempt.stamp}"

        logger.warning(f"Replacing database {db}; it is unavailable until the swap completes")
        attempt.swap_started = True

        try:
            await self._tools.terminate_connections(via, db)
        except CommandError as e:
            logger.warning(f"Connection termination reported: {e.message}")
        await asyncio.sleep(self._config.settle_seconds)

        try:
            await self._tools.rename_database(via, db, retained)
        except CommandError as e:
            raise SwapError(f"Failed to rename original database: {e.message}") from e
        attempt.retained_db = retained

        try:
            await self._tools.rename_database(via, scratch, db)
        except CommandError as e:
            logger.error(f"Failed to rename {scratch} to {db}; renaming {retained} back")
            try:
                await self._tools.rename_database(via, retained, db)
            except CommandError as rename_back:
                raise CriticalManualInterventionError(
                    db, retained, scratch, f"{e.message}; rename-back: {rename_back.message}"
                ) from rename_back
            attempt.retained_db = None
            raise SwapError(
                f"Database rename failed but rollback successful: {e.message}", recovered=True
            ) from e

        attempt.scratch_db = None
        logger.info(f"New database is live as {db}")
        return retained

    async def _carry_over_ledger(self, script: Path) -> bool:
        """Step 9: put the pre-restore ledger table into the new live database."""
        db = self._config.db_name
        try:
            await self._tools.drop_table(db, self._config.ledger_table)
        except CommandError as e:
            logger.warning(f"Could not drop {self._config.ledger_table}: {e.message}")

        try:
            await self._tools.apply_script(db, script, stop_on_error=True)
            return True
        except CommandError as e:
            if UNRECOGNIZED_PARAMETER not in e.stderr:
                logger.warning(f"Could not restore {self._config.ledger_table}: {e.message}")
                return False
            logger.info("Retrying ledger restore with errors ignored")

        try:
            await self._tools.apply_script(db, script, stop_on_error=False)
            return True
        except CommandError as e:
            logger.warning(f"Final ledger restore attempt failed: {e.message}")
            return False

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    async def _roll_back(
        self,
        attempt: RestoreAttempt,
        error: Exception,
        safety_backup_id: str | None,
        keep: list[Path],
    ) -> RestoreResult:
        logger.error(f"Initiating rollback of {self._config.db_name}")
        try:
            await self._rollback(attempt)
        except RollbackFailedError as rollback_error:
            logger.critical(f"Rollback failed: {rollback_error.message}")
            keep.append(Path(rollback_error.dump_path))
            return self._failed(
                error,
                RestoreOutcome.UNRECOVERABLE,
                safety_backup_id,
                rollback_error=rollback_error.message,
                manual_recovery=f"Use the backup file at: {rollback_error.dump_path}",
            )
        logger.info("Rollback successful; database restored to original state")
        return self._failed(error, RestoreOutcome.ROLLED_BACK, safety_backup_id)

    async def _rollback(self, attempt: RestoreAttempt) -> None:
        """Recreate the live database from the safety dump.

        Raises:
            RollbackFailedError: If the live database could not be recreated
                or the safety dump could not be applied.
        """
        db = self._config.db_name
        dump = attempt.safety_dump_path
        via = attempt.maintenance_db or self._config.maintenance_db
        try:
            await self._tools.ping(via)
        except CommandError:
            via = self._config.fallback_db
        attempt.maintenance_db = via

        await self._drop_scratch(attempt)

        try:
            await self._tools.terminate_connections(via, db)
        except CommandError as e:
            logger.warning(f"Connection termination during rollback reported: {e.message}")
        await asyncio.sleep(self._config.rollback_settle_seconds)

        try:
            await self._tools.drop_database(via, db)
            await self._tools.create_database(via, db)
            await self._tools.apply_script(db, dump, stop_on_error=True)
        except CommandError as e:
            raise RollbackFailedError(e.message, str(dump)) from e

    # ------------------------------------------------------------------
    # Retained databases
    # ------------------------------------------------------------------

    async def _existing_maintenance(self) -> str:
        """Maintenance database if it already exists, else the fallback."""
        maintenance = self._config.maintenance_db
        fallback = self._config.fallback_db
        try:
            if await self._tools.database_exists(fallback, maintenance):
                return maintenance
        except CommandError as e:
            logger.warning(f"Could not check {maintenance}, using {fallback}: {e.message}")
        return fallback

    async def list_retained_databases(self) -> list[str]:
        """Original databases kept by earlier restores, oldest first."""
        via = await self._existing_maintenance()
        return await self._tools.list_databases(via, self.retained_prefix)

    async def drop_retained_database(self, name: str) -> None:
        """Drop a database kept by an earlier restore.

        Raises:
            ValueError: If ``name`` is not a retained copy of the live database.
        """
        suffix = name[len(self.retained_prefix):]
        if name == self._config.db_name or not name.startswith(self.retained_prefix) or not suffix.isdigit():
            raise ValueError(f"{name} is not a retained backup of {self._config.db_name}")

        via = await self._existing_maintenance()
        await self._tools.drop_database(via, name)
        logger.info(f"Dropped retained database {name}")
