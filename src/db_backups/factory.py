"""Wiring of the backup components from configuration.

``build_components()`` is the one place where configuration turns into live
objects: command runner, client tools, artifact store, ledger, both
orchestrators and the service facade.

Usage:
    from db_backups.config import load_config
    from db_backups.factory import build_components

    components = build_components(load_config())
    try:
        await components.ledger.ensure_table()
        response = await components.service.list_backups()
    finally:
        await components.close()
"""

from dataclasses import dataclass

from sqlalchemy.engine import make_url

from db_backups.backup.orchestrator import BackupOrchestrator
from db_backups.commands.postgres import PostgresTools
from db_backups.commands.runner import CommandRunner, SubprocessRunner
from db_backups.config.models import OrchestratorConfig
from db_backups.ledger.base import BackupLedger
from db_backups.ledger.postgres import PostgresLedger
from db_backups.restore.orchestrator import RestoreOrchestrator
from db_backups.service import BackupService
from db_backups.store import build_store
from db_backups.store.base import ArtifactStore


@dataclass
class Components:
    """Everything a caller needs to run backups and restores."""

    config: OrchestratorConfig
    tools: PostgresTools
    store: ArtifactStore
    ledger: BackupLedger
    backups: BackupOrchestrator
    restorer: RestoreOrchestrator
    service: BackupService

    async def prepare(self) -> None:
        """Create the ledger table if the ledger is database-backed."""
        ensure_table = getattr(self.ledger, "ensure_table", None)
        if ensure_table is not None:
            await ensure_table()

    async def close(self) -> None:
        """Release the ledger's connection pool, if it has one."""
        close = getattr(self.ledger, "close", None)
        if close is not None:
            await close()


def live_database_url(config: OrchestratorConfig) -> str:
    """Full URL of the live database."""
    url = make_url(config.database_url).set(database=config.db_name)
    return url.render_as_string(hide_password=False)


def build_components(
    config: OrchestratorConfig,
    runner: CommandRunner | None = None,
    ledger: BackupLedger | None = None,
    store: ArtifactStore | None = None,
) -> Components:
    """Build the component graph for ``config``.

    Args:
        config: Resolved configuration.
        runner: Command runner.  Defaults to ``SubprocessRunner``.
        ledger: Ledger.  Defaults to a ``PostgresLedger`` in the live database.
        store: Artifact store.  Defaults to the configured backend.
    """
    runner = runner or SubprocessRunner(default_timeout=config.command_timeout)
    tools = PostgresTools(config.database_url, runner, timeout=config.command_timeout)
    store = store or build_store(config.store)
    ledger = ledger or PostgresLedger(live_database_url(config), table=config.ledger_table)

    backups = BackupOrchestrator(config, ledger, store, tools)
    restorer = RestoreOrchestrator(config, tools, store, backups)
    service = BackupService(config, ledger, backups, restorer)
    return Components(
        config=config,
        tools=tools,
        store=store,
        ledger=ledger,
        backups=backups,
        restorer=restorer,
        service=service,
    )
