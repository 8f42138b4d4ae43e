"""Artifact store protocol.

The orchestrators only need two operations: upload an archive's bytes and
fetch bytes back by reference.  Both may fail and may be slow.

Usage:
    from db_backups.store.base import ArtifactStore

    async def roundtrip(store: ArtifactStore) -> bytes:
        stored = await store.put(b"...", "db_backup.zip", "application/zip")
        return await store.get(stored.artifact_url)
"""

from typing import Protocol

from pydantic import BaseModel


class StoredArtifact(BaseModel):
    """Reference returned by ``ArtifactStore.put()``."""

    artifact_id: str
    artifact_url: str


class ArtifactStore(Protocol):
    """Durable storage for snapshot archives."""

    async def put(self, data: bytes, filename: str, mime_type: str) -> StoredArtifact:
        """Store ``data`` and return its id and URL."""
        ...

    async def get(self, ref: str) -> bytes:
        """Return the bytes stored under ``ref`` (an id or a URL)."""
        ...
