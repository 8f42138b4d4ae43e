"""Snapshot codec: SQL dump <-> zip archive.

Usage:
    from db_backups.snapshot import package_dump, materialize_dump, SnapshotArtifact
"""

from db_backups.snapshot.codec import (
    ARCHIVE_MIME_TYPE,
    SnapshotArtifact,
    archive_name,
    materialize_dump,
    package_dump,
)

__all__ = [
    "ARCHIVE_MIME_TYPE",
    "SnapshotArtifact",
    "archive_name",
    "materialize_dump",
    "package_dump",
]
