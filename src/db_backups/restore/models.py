"""Restore attempt state and result models.

``RestoreAttempt`` is the working state of one restore invocation and is
never persisted.  ``RestoreResult`` is what every restore returns.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import BaseModel


class RestoreOutcome(str, Enum):
    """Final state of the live database after a restore."""

    UNCHANGED = "unchanged"
    SUCCEEDED = "succeeded"
    ROLLED_BACK = "rolled_back"
    UNRECOVERABLE = "unrecoverable"


@dataclass
class RestoreAttempt:
    """Working state of one restore invocation.

    Attributes:
        workdir: Private temporary directory of this attempt.
        stamp: Epoch-millisecond stamp used in scratch/retained names.
        safety_dump_path: Dump of the live database taken before any change.
        maintenance_db: Database through which DDL is issued.
        scratch_db: Scratch database name, once created.
        retained_db: Name the original live database was renamed to.
        rollback_armed: True once the safety dump exists.
        swap_started: True once the live database may have been touched.
    """

    workdir: Path
    stamp: int
    safety_dump_path: Path | None = None
    maintenance_db: str | None = None
    scratch_db: str | None = None
    retained_db: str | None = None
    rollback_armed: bool = False
    swap_started: bool = False


class RestoreResult(BaseModel):
    """Result of a restore.

    Attributes:
        outcome: State the live database was left in.
        message: Human-readable summary.
        database: Live database name.
        retained_database: Name the pre-restore database is kept under.
        safety_backup_id: Ledger id of the pre-restore backup (production).
        failed_step: Protocol step that failed.
        error: Error message of the failure.
        error_type: Class name of the failure.
        rollback_error: Error raised by the rollback procedure.
        manual_recovery: Instructions when operator action is required.
        ledger_restored: Whether the ledger table was carried over.
    """

    outcome: RestoreOutcome
    message: str
    database: str
    retained_database: str | None = None
    safety_backup_id: str | None = None
    failed_step: str | None = None
    error: str | None = None
    error_type: str | None = None
    rollback_error: str | None = None
    manual_recovery: str | None = None
    ledger_restored: bool = False

    @property
    def ok(self) -> bool:
        """True if the new snapshot is live."""
        return self.outcome == RestoreOutcome.SUCCEEDED

    @property
    def changed(self) -> bool:
        """True if the live database no longer holds its pre-restore content."""
        return self.outcome in (RestoreOutcome.SUCCEEDED, RestoreOutcome.UNRECOVERABLE)
