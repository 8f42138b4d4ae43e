"""Result model for completed backups."""

from pydantic import BaseModel

from db_backups.ledger.models import BackupKind


class BackupOutcome(BaseModel):
    """A backup that reached ``success``."""

    record_id: str
    artifact_id: str
    artifact_url: str
    compressed_size: int
    uncompressed_size: int
    kind: BackupKind
