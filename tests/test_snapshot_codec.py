"""Tests for packaging dumps into archives and materializing them back."""

import base64
import io
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from db_backups.errors import ArtifactInvalidError
from db_backups.snapshot.codec import archive_name, materialize_dump, package_dump


def _zip_bytes(members: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class TestArchiveName:
    def test_timestamped(self):
        now = datetime(2026, 1, 15, 1, 0, 0, 123456, tzinfo=timezone.utc)

        assert archive_name(now) == "db_backup_2026_01_15T01_00_00_123Z.zip"

    def test_default_is_now(self):
        assert archive_name().startswith("db_backup_")


class TestPackageDump:
    """Compressing one dump file."""

    def test_package_and_materialize(self, tmp_path):
        dump = tmp_path / "db_backup.sql"
        dump.write_text("CREATE TABLE orders (id int);\n" * 200)

        artifact = package_dump(dump, tmp_path)

        assert artifact.path.exists()
        assert artifact.uncompressed_size == dump.stat().st_size
        assert artifact.compressed_size < artifact.uncompressed_size
        with zipfile.ZipFile(artifact.path) as zf:
            assert zf.namelist() == ["db_backup.sql"]

        out = tmp_path / "out"
        out.mkdir()
        restored = materialize_dump(artifact.path.read_bytes(), out)
        assert restored.read_text() == dump.read_text()

    def test_missing_dump(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            package_dump(tmp_path / "nope.sql", tmp_path)


class TestMaterializeDump:
    """Archive validation on the way back in."""

    def test_base64_archive(self, tmp_path):
        data = base64.b64encode(_zip_bytes({"dump.sql": b"SELECT 1;"}))

        path = materialize_dump(data, tmp_path)

        assert path == tmp_path / "dump.sql"
        assert path.read_bytes() == b"SELECT 1;"

    def test_nested_member_extracted_by_base_name(self, tmp_path):
        data = _zip_bytes({"../../etc/dump.sql": b"SELECT 1;"})

        path = materialize_dump(data, tmp_path)

        assert path == tmp_path / "dump.sql"

    def test_ignores_non_sql_and_resource_forks(self, tmp_path):
        data = _zip_bytes(
            {"README.txt": b"hi", "__MACOSX/._dump.sql": b"junk", "dump.sql": b"SELECT 1;"}
        )

        assert materialize_dump(data, tmp_path).name == "dump.sql"

    def test_no_sql_file(self, tmp_path):
        with pytest.raises(ArtifactInvalidError, match="No SQL file found in archive"):
            materialize_dump(_zip_bytes({"notes.txt": b"x"}), tmp_path)

    def test_several_sql_files(self, tmp_path):
        data = _zip_bytes({"a.sql": b"1", "b.sql": b"2"})

        with pytest.raises(ArtifactInvalidError, match="expected exactly one"):
            materialize_dump(data, tmp_path)

    @pytest.mark.parametrize("data", [b"", b"not a zip at all", b"!!!!"])
    def test_not_an_archive(self, tmp_path, data):
        with pytest.raises(ArtifactInvalidError) as exc_info:
            materialize_dump(data, tmp_path)

        assert exc_info.value.step == "materialize"
        assert list(Path(tmp_path).iterdir()) == []
