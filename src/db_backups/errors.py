"""Error taxonomy for backup and restore operations.

Every error derives from ``BackupError`` and carries the ``step`` it was
raised from, so callers can report where an operation stopped.

Backup-side errors that happen after a ledger record exists derive from
``RecordError`` and carry the ``record_id`` as a first-class field.

Usage:
    from db_backups.errors import BusyError, CaptureError

    try:
        outcome = await orchestrator.run()
    except BusyError:
        ...
    except CaptureError as e:
        print(e.record_id, e.ledger_warning)
"""

from collections.abc import Sequence


class BackupError(Exception):
    """Base class for all backup/restore errors."""

    def __init__(self, message: str, step: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step


class BusyError(BackupError):
    """Raised when another backup is already pending. Nothing was mutated."""

    def __init__(self, message: str = "Backup is already in progress. Please wait.") -> None:
        super().__init__(message, step="guard")


class LedgerError(BackupError):
    """Raised when the ledger rejects or fails an operation."""


class RecordError(BackupError):
    """A backup failure tied to an already-created ledger record.

    Attributes:
        record_id: Id of the ledger record the failure belongs to.
        ledger_warning: Set when the record could not be moved to ``error``
            afterwards and is left ``pending``.
    """

    def __init__(self, message: str, record_id: str, step: str | None = None) -> None:
        super().__init__(message, step=step)
        self.record_id = record_id
        self.ledger_warning: str | None = None


class CaptureError(RecordError):
    """The dump tool failed or produced no output file."""


class PackageError(RecordError):
    """The dump could not be compressed into an archive."""


class UploadError(RecordError):
    """The artifact store failed or returned no artifact reference."""


class CommandError(BackupError):
    """An external client command exited unsuccessfully.

    Attributes:
        args: Command argv with credentials masked.
        exit_code: Process exit code (124 on timeout, 127 if not found).
        stderr: The tool's error output.
    """

    def __init__(
        self,
        step: str,
        args: Sequence[str],
        exit_code: int,
        stderr: str,
    ) -> None:
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"{step} failed: {detail}", step=step)
        self.args_list = list(args)
        self.exit_code = exit_code
        self.stderr = stderr


# ------------------------------------------------------------------
# Restore-side errors
# ------------------------------------------------------------------


class RestoreError(BackupError):
    """Base class for restore protocol errors."""


class ArtifactFetchError(RestoreError):
    """The artifact could not be fetched from the store."""


class ArtifactInvalidError(RestoreError):
    """The artifact is not an archive holding exactly one dump file."""


class SafetyBackupError(RestoreError):
    """A safety copy could not be taken, so the restore was not attempted."""


class CorruptSnapshotError(RestoreError):
    """The dump failed to apply to the scratch database."""


class SwapError(RestoreError):
    """The rename swap failed.

    ``recovered`` is True when the live database was renamed back to its
    original name and holds its original data.
    """

    def __init__(self, message: str, recovered: bool = False) -> None:
        super().__init__(message, step="swap")
        self.recovered = recovered


class CriticalManualInterventionError(RestoreError):
    """The swap failed and the emergency rename-back failed too."""

    def __init__(self, live_db: str, retained_db: str, scratch_db: str, cause: str) -> None:
        super().__init__(
            "CRITICAL: Database rename failed and rollback failed. "
            f"Manual intervention required. Original DB: {retained_db}, "
            f"Temp DB: {scratch_db}, expected live name: {live_db} ({cause})",
            step="swap",
        )
        self.live_db = live_db
        self.retained_db = retained_db
        self.scratch_db = scratch_db


class RollbackFailedError(RestoreError):
    """The rollback procedure could not complete.

    The safety dump at ``dump_path`` is left on disk for manual recovery.
    """

    def __init__(self, message: str, dump_path: str) -> None:
        super().__init__(message, step="rollback")
        self.dump_path = dump_path
