"""Configuration management: TOML loading, env overrides, and config models.

Usage:
    >>> from db_backups.config import load_config, OrchestratorConfig, StoreConfig
"""

from db_backups.config.loader import load_config, split_database_url
from db_backups.config.models import OrchestratorConfig, StoreConfig

__all__ = ["load_config", "split_database_url", "OrchestratorConfig", "StoreConfig"]
