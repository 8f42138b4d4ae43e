"""Filesystem artifact store.

Keeps archives in a local directory.  Artifact ids are file names; URLs are
``file://`` URIs.  Useful for single-host deployments and tests.
"""

import asyncio
from pathlib import Path
from urllib.parse import unquote, urlparse

from db_backups.store.base import StoredArtifact


class LocalArtifactStore:
    """Artifact store backed by a directory.

    Args:
        root: Directory holding the archives.  Created on first ``put()``.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, ref: str) -> Path:
        """Resolve an id or ``file://`` URL to a path inside the root."""
        if ref.startswith("file://"):
            path = Path(unquote(urlparse(ref).path)).resolve()
        else:
            path = (self._root / ref).resolve()

        if path.parent != self._root:
            raise FileNotFoundError(f"Artifact outside store: {ref}")
        return path

    async def put(self, data: bytes, filename: str, mime_type: str) -> StoredArtifact:
        path = self._path_for(Path(filename).name)
        await asyncio.to_thread(self._write, path, data)
        return StoredArtifact(artifact_id=path.name, artifact_url=path.as_uri())

    async def get(self, ref: str) -> bytes:
        path = self._path_for(ref)
        if not path.exists():
            raise FileNotFoundError(f"Artifact not found: {ref}")
        return await asyncio.to_thread(path.read_bytes)

    def _write(self, path: Path, data: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
