"""Configuration loader: TOML file plus environment overrides."""

import os
import tomllib
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from db_backups.config.models import OrchestratorConfig, StoreConfig

# Environment variable -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DB_BASE": ("backup", "database_url"),
    "DB_NAME": ("backup", "db_name"),
    "DB_BACKUP_AUTO": ("backup", "auto_backup"),
    "DB_BACKUP_SCHEDULE": ("backup", "backup_schedule"),
    "APP_ENV": ("backup", "environment"),
    "BACKUP_STORE_DIR": ("store", "local_dir"),
    "S3_BUCKET": ("store", "s3_bucket"),
    "S3_REGION": ("store", "s3_region"),
    "S3_ACCESS_KEY_ID": ("store", "s3_access_key_id"),
    "S3_SECRET_ACCESS_KEY": ("store", "s3_secret_access_key"),
}


def split_database_url(database_url: str) -> tuple[str, str | None]:
    """Split a full connection URL into ``(base, db_name)``.

    Query parameters (``sslmode`` and friends) stay on the base URL.

    Example:
        >>> split_database_url("postgresql://u:p@host:5432/shop?sslmode=require")
        ('postgresql://u:p@host:5432?sslmode=require', 'shop')

    Raises:
        ValueError: If ``database_url`` is not a valid connection URL.
    """
    try:
        url = make_url(database_url)
    except ArgumentError as e:
        raise ValueError("DATABASE_URL is not a valid database URL") from e

    name = url.database.rstrip("/") if url.database else None
    base = url.set(database=None).render_as_string(hide_password=False)
    return base, name or None


def load_config(
    config_path: Path | None = None,
    env_prefix: str = "",
) -> OrchestratorConfig:
    """Load orchestrator configuration.

    Reads the ``[backup]`` and ``[store]`` tables from a TOML file, then
    applies environment overrides.  ``DATABASE_URL`` is split into base URL
    and database name; ``DB_BASE`` and ``DB_NAME`` take precedence over it.
    Every variable is looked up as ``{env_prefix}{NAME}``.

    Args:
        config_path: Path to the TOML file.  Defaults to
            ``Path.cwd() / "backups.toml"``, which may be absent.
        env_prefix: Prefix for environment variable lookup
            (e.g. ``"APP_"`` reads ``APP_DB_NAME``).

    Returns:
        Resolved ``OrchestratorConfig``.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        ValueError: If no database URL or database name is configured.
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / "backups.toml"

    data: dict = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    elif explicit:
        raise FileNotFoundError(f"Backup config not found: {config_path}")

    sections: dict[str, dict] = {
        "backup": dict(data.get("backup", {})),
        "store": dict(data.get("store", {})),
    }

    full_url = os.environ.get(f"{env_prefix}DATABASE_URL")
    if full_url:
        base, name = split_database_url(full_url)
        sections["backup"]["database_url"] = base
        if name:
            sections["backup"]["db_name"] = name

    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(f"{env_prefix}{var}")
        if value is None or value == "":
            continue
        if key == "auto_backup":
            sections[section][key] = value.strip().lower() == "true"
        else:
            sections[section][key] = value

    # S3 credentials in the environment imply the S3 backend unless configured otherwise
    if sections["store"].get("s3_bucket") and "backend" not in sections["store"]:
        sections["store"]["backend"] = "s3"

    backup = sections["backup"]
    if not backup.get("database_url") or not backup.get("db_name"):
        raise ValueError(
            "No database configured.\n"
            f"Set {env_prefix}DATABASE_URL (or {env_prefix}DB_BASE and "
            f"{env_prefix}DB_NAME), or add database_url/db_name to the "
            "[backup] table of backups.toml."
        )

    return OrchestratorConfig(**backup, store=StoreConfig(**sections["store"]))
