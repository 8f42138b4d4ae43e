"""Tests for configuration loading (TOML file + environment overrides)."""

import textwrap
from pathlib import Path

import pytest
from sqlalchemy.engine import make_url

from db_backups.config.loader import load_config, split_database_url
from db_backups.config.models import OrchestratorConfig, StoreConfig

_ENV_VARS = (
    "DATABASE_URL",
    "DB_BASE",
    "DB_NAME",
    "DB_BACKUP_AUTO",
    "DB_BACKUP_SCHEDULE",
    "APP_ENV",
    "BACKUP_STORE_DIR",
    "S3_BUCKET",
    "S3_REGION",
    "S3_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """No ambient configuration leaks into these tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
        monkeypatch.delenv(f"APP_{var}", raising=False)
    monkeypatch.chdir(tmp_path)


def _write_toml(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content))
    return path


class TestSplitDatabaseUrl:
    """Splitting full URLs into server base and database name."""

    def test_basic(self):
        assert split_database_url("postgresql://u:p@host:5432/shop") == (
            "postgresql://u:p@host:5432",
            "shop",
        )

    def test_query_string_dropped_from_name(self):
        assert split_database_url("postgresql://u:p@host/shop?sslmode=require")[1] == "shop"

    def test_trailing_slash(self):
        assert split_database_url("postgresql://host/shop/")[1] == "shop"

    def test_query_parameters_stay_on_base(self):
        base, name = split_database_url(
            "postgresql://u:p@h:5432/shop?sslmode=verify-full&sslrootcert=/ca.pem"
        )

        assert name == "shop"
        url = make_url(base)
        assert url.database is None
        assert url.host == "h"
        assert url.query["sslmode"] == "verify-full"
        assert url.query["sslrootcert"] == "/ca.pem"

    def test_no_database_name(self):
        assert split_database_url("postgresql://u:p@h:5432") == ("postgresql://u:p@h:5432", None)

    def test_invalid_url(self):
        with pytest.raises(ValueError, match="not a valid database URL"):
            split_database_url("not a url")


class TestLoadConfig:
    """TOML tables and environment overrides."""

    def test_database_url_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://app:pw@db:5432/shop")

        config = load_config()

        assert config.database_url == "postgresql://app:pw@db:5432"
        assert config.db_name == "shop"

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://app:pw@db:5432/shop")

        config = load_config()

        assert config.maintenance_db == "postgres_safe_db"
        assert config.fallback_db == "postgres"
        assert config.ledger_table == "db_backups"
        assert config.exclude_table_data == ["workflow_execution"]
        assert config.command_timeout == 3600
        assert config.settle_seconds == 2.0
        assert config.rollback_settle_seconds == 1.0
        assert config.backup_schedule == "0 1 * * *"
        assert config.auto_backup is False
        assert config.production is False
        assert config.store.backend == "local"

    def test_database_url_keeps_tls_parameters(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://app:pw@db:5432/shop?sslmode=require")

        config = load_config()

        assert config.db_name == "shop"
        assert make_url(config.database_url).query["sslmode"] == "require"

    def test_database_url_without_name_uses_db_name(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://app:pw@db:5432")
        monkeypatch.setenv("DB_NAME", "shop")

        assert load_config().db_name == "shop"

    def test_db_base_and_name_override_database_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://app:pw@db:5432/shop")
        monkeypatch.setenv("DB_BASE", "postgresql://admin:pw@other:5432")
        monkeypatch.setenv("DB_NAME", "store")

        config = load_config()

        assert config.database_url == "postgresql://admin:pw@other:5432"
        assert config.db_name == "store"

    def test_toml_file(self, tmp_path):
        path = _write_toml(
            tmp_path / "backups.toml",
            """
            [backup]
            database_url = "postgresql://app:pw@db:5432"
            db_name = "shop"
            exclude_table_data = ["audit_log", "sessions"]
            environment = "production"

            [store]
            local_dir = "/var/backups"
            """,
        )

        config = load_config(path)

        assert config.exclude_table_data == ["audit_log", "sessions"]
        assert config.production is True
        assert config.store.local_dir == "/var/backups"

    def test_default_path_is_cwd(self, tmp_path):
        _write_toml(
            tmp_path / "backups.toml",
            """
            [backup]
            database_url = "postgresql://db:5432"
            db_name = "shop"
            """,
        )

        assert load_config().db_name == "shop"

    def test_env_overrides_toml(self, tmp_path, monkeypatch):
        path = _write_toml(
            tmp_path / "backups.toml",
            """
            [backup]
            database_url = "postgresql://db:5432"
            db_name = "shop"
            backup_schedule = "0 3 * * *"
            """,
        )
        monkeypatch.setenv("DB_BACKUP_SCHEDULE", "30 2 * * *")
        monkeypatch.setenv("DB_BACKUP_AUTO", "true")

        config = load_config(path)

        assert config.backup_schedule == "30 2 * * *"
        assert config.auto_backup is True

    @pytest.mark.parametrize("value", ["false", "1", "yes", "TRUEISH"])
    def test_auto_backup_only_true_enables(self, monkeypatch, value):
        monkeypatch.setenv("DATABASE_URL", "postgresql://db/shop")
        monkeypatch.setenv("DB_BACKUP_AUTO", value)

        assert load_config().auto_backup is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("APP_DATABASE_URL", "postgresql://db/prefixed")
        monkeypatch.setenv("DATABASE_URL", "postgresql://db/unprefixed")

        assert load_config(env_prefix="APP_").db_name == "prefixed"

    def test_s3_bucket_selects_s3_backend(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://db/shop")
        monkeypatch.setenv("S3_BUCKET", "backups-bucket")
        monkeypatch.setenv("S3_REGION", "eu-west-1")

        store = load_config().store

        assert store.backend == "s3"
        assert store.s3_bucket == "backups-bucket"
        assert store.s3_region == "eu-west-1"

    def test_explicit_backend_wins_over_bucket(self, tmp_path, monkeypatch):
        path = _write_toml(
            tmp_path / "backups.toml",
            """
            [backup]
            database_url = "postgresql://db:5432"
            db_name = "shop"

            [store]
            backend = "local"
            """,
        )
        monkeypatch.setenv("S3_BUCKET", "backups-bucket")

        assert load_config(path).store.backend == "local"

    def test_missing_database_raises(self):
        with pytest.raises(ValueError, match="No database configured"):
            load_config()

    def test_explicit_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")


class TestModels:
    """Direct model construction."""

    def test_production_property(self):
        config = OrchestratorConfig(database_url="postgresql://db", db_name="shop", environment="production")
        assert config.production is True

    def test_store_defaults(self):
        store = StoreConfig()
        assert store.backend == "local"
        assert store.s3_prefix == "db_backups"
