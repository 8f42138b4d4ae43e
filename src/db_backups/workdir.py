"""Per-invocation temporary working directories.

Each backup or restore invocation works inside its own directory created by
``make_workdir()`` and removed by ``cleanup_workdir()``.  Cleanup is
idempotent: calling it on an already-removed directory is a no-op.
"""

import logging
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def make_workdir(prefix: str, base_dir: str | None = None) -> Path:
    """Create a fresh private directory (under ``base_dir`` or the system temp dir)."""
    if base_dir is not None:
        Path(base_dir).mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))


def cleanup_workdir(workdir: Path, keep: Iterable[Path] = ()) -> None:
    """Remove ``workdir`` and its contents, except files listed in ``keep``.

    When files are kept, the directory itself stays so they remain at their
    reported paths.
    """
    if not workdir.exists():
        return

    kept = {Path(p).resolve() for p in keep}
    if not kept:
        shutil.rmtree(workdir, ignore_errors=True)
        return

    for entry in workdir.iterdir():
        if entry.resolve() in kept:
            continue
        if entry.is_dir():
            shutil.rmtree(entry, ignore_errors=True)
        else:
            entry.unlink(missing_ok=True)
    logger.info(f"Kept {len(kept)} file(s) in {workdir} for manual recovery")
