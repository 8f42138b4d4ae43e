"""Backup orchestrator: guard -> dump -> compress -> upload -> ledger.

Drives one backup through the ledger lifecycle ``pending -> success | error``.
The steps are exposed individually (``begin``, ``capture``, ``package``,
``publish``, ``finish``) and chained by ``run()``.

Usage:
    from db_backups.backup.orchestrator import BackupOrchestrator

    orchestrator = BackupOrchestrator(config, ledger, store, tools)
    outcome = await orchestrator.run(kind=BackupKind.MANUAL, note="before upgrade")
    print(outcome.record_id, outcome.artifact_url)
"""

import asyncio
import logging
from pathlib import Path

from db_backups.backup.guard import ConcurrencyGuard
from db_backups.backup.models import BackupOutcome
from db_backups.commands.postgres import PostgresTools
from db_backups.config.models import OrchestratorConfig
from db_backups.errors import (
    CaptureError,
    CommandError,
    LedgerError,
    PackageError,
    RecordError,
    UploadError,
)
from db_backups.ledger.base import BackupLedger
from db_backups.ledger.models import BackupKind, BackupRecord, BackupStatus
from db_backups.snapshot.codec import ARCHIVE_MIME_TYPE, SnapshotArtifact, package_dump
from db_backups.store.base import ArtifactStore, StoredArtifact
from db_backups.workdir import cleanup_workdir, make_workdir

logger = logging.getLogger(__name__)

DUMP_FILENAME = "db_backup.sql"


class BackupOrchestrator:
    """Produces a snapshot of the live database and records it in the ledger.

    Args:
        config: Orchestrator configuration (live database, exclusions).
        ledger: Backup ledger.
        store: Artifact store receiving the archives.
        tools: PostgreSQL client tools.
        guard: Concurrency guard.  Defaults to a guard over ``ledger``; pass
            a shared instance when several orchestrators use one ledger.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        ledger: BackupLedger,
        store: ArtifactStore,
        tools: PostgresTools,
        guard: ConcurrencyGuard | None = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._store = store
        self._tools = tools
        self._guard = guard or ConcurrencyGuard(ledger)

    @property
    def ledger(self) -> BackupLedger:
        return self._ledger

    @property
    def guard(self) -> ConcurrencyGuard:
        return self._guard

    # ------------------------------------------------------------------
    # Lifecycle steps
    # ------------------------------------------------------------------

    async def begin(
        self,
        kind: BackupKind = BackupKind.MANUAL,
        note: str | None = None,
    ) -> BackupRecord:
        """Pass the guard and create the ``pending`` record.

        Raises:
            BusyError: If another backup is pending.
            LedgerError: If the ledger returned no record id.
        """
        metadata: dict = {"kind": BackupKind(kind).value}
        if note:
            metadata["note"] = note

        record = await self._guard.reserve({"metadata": metadata})
        if not record or not record.id:
            raise LedgerError("Failed to create a new backup entry", step="begin")

        logger.info(f"Backup {record.id} started ({metadata['kind']})")
        return record

    async def capture(self, record: BackupRecord, workdir: Path) -> Path:
        """Dump the live database into ``workdir``.

        Raises:
            CaptureError: If the dump tool fails or writes no file.
        """
        dump_path = workdir / DUMP_FILENAME
        try:
            await self._tools.dump_database(
                self._config.db_name,
                dump_path,
                self._config.exclude_table_data,
            )
        except CommandError as e:
            raise CaptureError(
                f"Database dump failed: {e.message}", record.id, step="capture"
            ) from e

        if not dump_path.exists():
            raise CaptureError("Backup file not found!", record.id, step="capture")
        return dump_path

    def package(self, record: BackupRecord, dump_path: Path, workdir: Path) -> SnapshotArtifact:
        """Compress the dump into a single-file archive.

        Raises:
            PackageError: If the archive cannot be written.
        """
        try:
            artifact = package_dump(dump_path, workdir)
        except OSError as e:
            raise PackageError(f"Failed to compress dump: {e}", record.id, step="package") from e

        logger.info(
            f"Backup {record.id} packaged: {artifact.filename} "
            f"({artifact.compressed_size} bytes, {artifact.uncompressed_size} uncompressed)"
        )
        return artifact

    async def publish(self, record: BackupRecord, artifact: SnapshotArtifact) -> StoredArtifact:
        """Upload the archive to the artifact store.

        Raises:
            UploadError: If the store fails or returns no artifact reference.
        """
        try:
            data = await asyncio.to_thread(artifact.path.read_bytes)
            stored = await self._store.put(data, artifact.filename, ARCHIVE_MIME_TYPE)
        except Exception as e:
            raise UploadError(f"Failed to upload backup: {e}", record.id, step="publish") from e

        if stored is None or not stored.artifact_id:
            raise UploadError(
                "Failed to upload backup: no artifact reference returned",
                record.id,
                step="publish",
            )
        return stored

    async def finish(
        self,
        record: BackupRecord,
        stored: StoredArtifact | None = None,
        artifact: SnapshotArtifact | None = None,
        error: str | None = None,
    ) -> BackupRecord:
        """Move the record out of ``pending``.

        With ``stored`` the record becomes ``success`` and receives the
        artifact reference and sizes; otherwise it becomes ``error`` with the
        ``error`` message in its metadata.
        """
        metadata = dict(record.metadata)
        if stored is not None:
            if artifact is not None:
                metadata["compressed_size"] = artifact.compressed_size
                metadata["uncompressed_size"] = artifact.uncompressed_size
            fields = {
                "status": BackupStatus.SUCCESS,
                "artifact_id": stored.artifact_id,
                "artifact_url": stored.artifact_url,
                "metadata": metadata,
            }
        else:
            metadata["error"] = error or "Backup failed"
            fields = {"status": BackupStatus.ERROR, "metadata": metadata}

        return await self._ledger.update_by_id(record.id, fields)

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def run(
        self,
        kind: BackupKind = BackupKind.MANUAL,
        note: str | None = None,
    ) -> BackupOutcome:
        """Run a complete backup.

        Raises:
            BusyError: If another backup is pending (nothing was created).
            CaptureError, PackageError, UploadError: If a step failed.  The
                record was moved to ``error``; if even that failed,
                ``ledger_warning`` on the error says so.
        """
        record = await self.begin(kind, note)
        workdir: Path | None = None

        try:
            try:
                workdir = make_workdir("db-backup-", self._config.work_dir)
            except OSError as e:
                raise CaptureError(
                    f"Could not create working directory: {e}", record.id, step="capture"
                ) from e
            dump_path = await self.capture(record, workdir)
            artifact = self.package(record, dump_path, workdir)
            stored = await self.publish(record, artifact)
            try:
                await self.finish(record, stored=stored, artifact=artifact)
            except Exception as e:
                raise RecordError(
                    f"Failed to record backup success: {e}", record.id, step="finish"
                ) from e
        except RecordError as e:
            e.ledger_warning = await self._fail(record, e.message)
            raise
        except Exception as e:
            await self._fail(record, str(e))
            raise
        finally:
            if workdir is not None:
                cleanup_workdir(workdir)

        logger.info(f"Backup {record.id} completed: {stored.artifact_url}")
        return BackupOutcome(
            record_id=record.id,
            artifact_id=stored.artifact_id,
            artifact_url=stored.artifact_url,
            compressed_size=artifact.compressed_size,
            uncompressed_size=artifact.uncompressed_size,
            kind=BackupKind(kind),
        )

    async def _fail(self, record: BackupRecord, message: str) -> str | None:
        """Move ``record`` to ``error``; return a warning if that fails too."""
        logger.error(f"Backup {record.id} failed: {message}")
        try:
            await self.finish(record, error=message)
        except Exception as e:
            warning = (
                f"Backup {record.id} could not be marked as error and may be "
                f"left pending: {e}"
            )
            logger.warning(warning)
            return warning
        return None
