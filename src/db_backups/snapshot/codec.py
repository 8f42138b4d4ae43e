"""Snapshot codec: packs a SQL dump into a zip archive and back.

Knows nothing about restore safety -- it only turns one dump file into one
portable archive (``package_dump``) and an archive's bytes back into one dump
file on disk (``materialize_dump``).

Usage:
    from db_backups.snapshot.codec import package_dump, materialize_dump

    artifact = package_dump(Path("/tmp/work/db_backup.sql"), Path("/tmp/work"))
    data = artifact.path.read_bytes()

    dump_path = materialize_dump(data, Path("/tmp/restore"))
"""

import base64
import binascii
import io
import shutil
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from db_backups.errors import ArtifactInvalidError

ARCHIVE_MIME_TYPE = "application/zip"
DUMP_SUFFIX = ".sql"


@dataclass
class SnapshotArtifact:
    """A compressed archive on local disk holding one dump file."""

    path: Path
    filename: str
    compressed_size: int
    uncompressed_size: int


def archive_name(now: datetime | None = None) -> str:
    """Timestamped archive file name, e.g. ``db_backup_2026_01_15T01_00_00_000Z.zip``."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y_%m_%dT%H_%M_%S_") + f"{now.microsecond // 1000:03d}Z"
    return f"db_backup_{stamp}.zip"


def package_dump(
    dump_path: Path,
    output_dir: Path,
    now: datetime | None = None,
) -> SnapshotArtifact:
    """Compress ``dump_path`` into a single-member zip archive in ``output_dir``.

    Args:
        dump_path: Plain SQL dump file.
        output_dir: Directory the archive is written to.
        now: Timestamp used for the archive name (defaults to now, UTC).

    Returns:
        ``SnapshotArtifact`` with both compressed and uncompressed sizes.

    Raises:
        FileNotFoundError: If ``dump_path`` does not exist.
    """
    if not dump_path.exists():
        raise FileNotFoundError(f"Dump file not found: {dump_path}")

    filename = archive_name(now)
    archive_path = output_dir / filename
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.write(dump_path, arcname=dump_path.name)

    return SnapshotArtifact(
        path=archive_path,
        filename=filename,
        compressed_size=archive_path.stat().st_size,
        uncompressed_size=dump_path.stat().st_size,
    )


def _as_zip(data: bytes) -> zipfile.ZipFile:
    """Open ``data`` as a zip archive, accepting a base64-encoded archive too.

    Some upload providers store the base64 text of the archive instead of the
    raw bytes; both forms are accepted.
    """
    buffer = io.BytesIO(data)
    if zipfile.is_zipfile(buffer):
        return zipfile.ZipFile(buffer)

    try:
        decoded = base64.b64decode(data.strip(), validate=True)
    except (binascii.Error, ValueError):
        decoded = b""
    buffer = io.BytesIO(decoded)
    if decoded and zipfile.is_zipfile(buffer):
        return zipfile.ZipFile(buffer)

    raise ArtifactInvalidError("Artifact is not a zip archive", step="materialize")


def materialize_dump(data: bytes, output_dir: Path) -> Path:
    """Extract the single SQL dump from archive bytes into ``output_dir``.

    Only the dump member is extracted, under its base name, so archive paths
    can never escape ``output_dir``.

    Args:
        data: Archive bytes (raw zip or base64 text of a zip).
        output_dir: Existing directory to write the dump into.

    Returns:
        Path of the extracted dump file.

    Raises:
        ArtifactInvalidError: If the data is not an archive, or it holds zero
            or more than one ``.sql`` file.
    """
    try:
        with _as_zip(data) as zf:
            members = [
                info for info in zf.infolist()
                if not info.is_dir()
                and info.filename.lower().endswith(DUMP_SUFFIX)
                and not PurePosixPath(info.filename).name.startswith("._")
            ]
            if not members:
                raise ArtifactInvalidError("No SQL file found in archive", step="materialize")
            if len(members) > 1:
                names = ", ".join(m.filename for m in members)
                raise ArtifactInvalidError(
                    f"Archive contains {len(members)} SQL files ({names}); expected exactly one",
                    step="materialize",
                )

            member = members[0]
            target = output_dir / PurePosixPath(member.filename).name
            with zf.open(member) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
    except zipfile.BadZipFile as e:
        raise ArtifactInvalidError(f"Corrupt archive: {e}", step="materialize") from e

    return target
