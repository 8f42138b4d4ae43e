"""Artifact stores for snapshot archives.

``S3ArtifactStore`` needs boto3; ``LocalArtifactStore`` only the filesystem.

Usage:
    from db_backups.store import ArtifactStore, LocalArtifactStore, build_store
"""

from db_backups.config.models import StoreConfig
from db_backups.store.base import ArtifactStore, StoredArtifact
from db_backups.store.local import LocalArtifactStore


def build_store(config: StoreConfig) -> ArtifactStore:
    """Create the artifact store selected by ``config.backend``."""
    if config.backend == "s3":
        from db_backups.store.s3 import S3ArtifactStore

        return S3ArtifactStore.from_config(config)
    return LocalArtifactStore(config.local_dir)


__all__ = ["ArtifactStore", "StoredArtifact", "LocalArtifactStore", "build_store"]
