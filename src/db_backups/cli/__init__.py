"""CLI module for database backups and safe restores.

Usage:
    db-backups list
    db-backups backup --note "before migration"
    db-backups restore file:///var/backups/db_backup_2024.zip --yes
    db-backups delete backup_0f3c...
    db-backups note backup_0f3c... "known good"
    db-backups auto
    db-backups status
    db-backups retained
    db-backups drop-retained shop_backup_1700000000000 --confirm

Commands:
    list           - List backups, newest first
    backup         - Take a backup now
    restore        - Replace the live database with a backup
    delete         - Delete a backup record
    note           - Set the note of a backup
    auto           - Show automatic backup settings
    status         - Show configuration and database reachability
    retained       - List original databases kept by earlier restores
    drop-retained  - Drop one retained database
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_backups.config.loader import load_config
from db_backups.errors import BackupError, BusyError, CommandError, RecordError
from db_backups.factory import Components, build_components
from db_backups.ledger.models import BackupStatus
from db_backups.restore.models import RestoreOutcome

console = Console()

_STATUS_STYLE = {
    BackupStatus.PENDING: "yellow",
    BackupStatus.SUCCESS: "green",
    BackupStatus.ERROR: "red",
}


def _setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _components(args: argparse.Namespace) -> Components | None:
    """Load configuration and build the components, or print why not."""
    config_path = getattr(args, "config", None)
    try:
        config = load_config(
            Path(config_path) if config_path else None,
            env_prefix=getattr(args, "env_prefix", ""),
        )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None
    return build_components(config)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_list(args: argparse.Namespace) -> int:
    components = _components(args)
    if components is None:
        return 1
    try:
        await components.prepare()
        records = await components.ledger.list(newest_first=True)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    finally:
        await components.close()

    if not records:
        console.print("[dim]No backups yet.[/dim]")
        return 0

    table = Table(title="Backups", show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Created")
    table.add_column("Status")
    table.add_column("Kind")
    table.add_column("Size")
    table.add_column("Note")
    table.add_column("Artifact", overflow="fold")

    for record in records:
        style = _STATUS_STYLE.get(record.status, "white")
        table.add_row(
            record.id,
            record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{style}]{record.status.value}[/{style}]",
            record.kind or "",
            record.size_label,
            record.note or "",
            record.artifact_ref or record.metadata.get("error", ""),
        )

    console.print(table)
    return 0


async def _async_backup(args: argparse.Namespace) -> int:
    components = _components(args)
    if components is None:
        return 1

    console.print(
        f"Backing up [bold cyan]{components.config.db_name}[/bold cyan]...", style="dim"
    )
    try:
        await components.prepare()
        outcome = await components.backups.run(note=args.note)
    except BusyError as e:
        console.print(f"[yellow]{e.message}[/yellow]")
        return 1
    except RecordError as e:
        console.print(f"[bold red]x[/bold red] Backup {e.record_id} failed: {e.message}")
        if e.ledger_warning:
            console.print(f"[yellow]{e.ledger_warning}[/yellow]")
        return 1
    except BackupError as e:
        console.print(f"[bold red]x[/bold red] Backup failed: {e.message}")
        return 1
    finally:
        await components.close()

    console.print()
    console.print("[bold green]v[/bold green] Backup completed successfully")
    console.print(f"  ID: [cyan]{outcome.record_id}[/cyan]")
    console.print(f"  Artifact: {outcome.artifact_url}")
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    components = _components(args)
    if components is None:
        return 1

    config = components.config
    production = True if args.production else None

    if not args.yes:
        await components.close()
        console.print()
        console.print("[bold]Restore plan:[/bold]")
        if production or config.production:
            console.print("  - Take a pre-restore backup")
        console.print(f"  - Load [cyan]{args.url}[/cyan] into a temporary database")
        console.print(f"  - Swap it in as [bold cyan]{config.db_name}[/bold cyan]")
        console.print(f"  - Keep the current database as [dim]{config.db_name}_backup_<stamp>[/dim]")
        console.print()
        console.print("[yellow]Run with --yes to restore.[/yellow]")
        return 1

    try:
        await components.prepare()
        result = await components.restorer.restore(args.url, production=production)
    finally:
        await components.close()

    console.print()
    if result.ok:
        console.print(f"[bold green]v[/bold green] {result.message}")
        if not result.ledger_restored:
            console.print("[yellow]Backup records were not carried over.[/yellow]")
        console.print(
            f"[dim]Drop the kept database later with[/dim] "
            f"[cyan]db-backups drop-retained {result.retained_database} --confirm[/cyan]"
        )
        return 0

    style = "yellow" if result.outcome in (RestoreOutcome.UNCHANGED, RestoreOutcome.ROLLED_BACK) else "bold red"
    console.print(f"[{style}]{result.message}[/{style}]")
    table = Table(title="Restore Failure", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value", overflow="fold")
    table.add_row("Outcome", result.outcome.value)
    table.add_row("Step", result.failed_step or "")
    table.add_row("Error", result.error or "")
    if result.rollback_error:
        table.add_row("Rollback error", result.rollback_error)
    if result.manual_recovery:
        table.add_row("Manual recovery", f"[bold]{result.manual_recovery}[/bold]")
    console.print(table)
    return 1


async def _async_delete(args: argparse.Namespace) -> int:
    components = _components(args)
    if components is None:
        return 1
    try:
        await components.prepare()
        response = await components.service.delete_backup(args.id)
    finally:
        await components.close()

    if response.status_code != 200:
        console.print(f"[red]Error: {response.body['error']}[/red]")
        return 1
    console.print(f"[bold green]v[/bold green] Deleted backup record {args.id}")
    return 0


async def _async_note(args: argparse.Namespace) -> int:
    components = _components(args)
    if components is None:
        return 1
    try:
        await components.prepare()
        record = await components.ledger.get(args.id)
        if record is None:
            console.print(f"[red]Error: Backup {args.id} not found.[/red]")
            return 1
        response = await components.service.update_metadata(
            args.id, {**record.metadata, "note": args.text}
        )
    finally:
        await components.close()

    if response.status_code != 200:
        console.print(f"[red]Error: {response.body['error']}[/red]")
        return 1
    console.print(f"[bold green]v[/bold green] Note updated for {args.id}")
    return 0


async def _async_retained(args: argparse.Namespace) -> int:
    components = _components(args)
    if components is None:
        return 1
    try:
        names = await components.restorer.list_retained_databases()
    except CommandError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        return 1
    finally:
        await components.close()

    if not names:
        console.print("[dim]No retained databases.[/dim]")
        return 0

    table = Table(title="Retained Databases", show_header=True, header_style="bold")
    table.add_column("Database")
    for name in names:
        table.add_row(name)
    console.print(table)
    return 0


async def _async_drop_retained(args: argparse.Namespace) -> int:
    if not args.confirm:
        console.print(f"Would drop database [bold]{args.name}[/bold].")
        console.print("[yellow]Run with --confirm to drop it.[/yellow]")
        return 1

    components = _components(args)
    if components is None:
        return 1
    try:
        await components.restorer.drop_retained_database(args.name)
    except (ValueError, CommandError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    finally:
        await components.close()

    console.print(f"[bold green]v[/bold green] Dropped {args.name}")
    return 0


async def _async_status(args: argparse.Namespace) -> int:
    components = _components(args)
    if components is None:
        return 1

    config = components.config
    try:
        await components.tools.ping(config.db_name)
        reachable = "[green]reachable[/green]"
        ok = True
    except CommandError as e:
        reachable = f"[red]unreachable[/red] [dim]({e.stderr.strip() or e.exit_code})[/dim]"
        ok = False

    pending = "?"
    if ok:
        try:
            await components.prepare()
            pending = str(len(await components.ledger.list({"status": BackupStatus.PENDING})))
        except Exception as e:
            pending = f"[red]{e}[/red]"
    await components.close()

    table = Table(title="Backup Status", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Database", f"[bold cyan]{config.db_name}[/bold cyan] {reachable}")
    table.add_row("Environment", config.environment)
    table.add_row("Store", config.store.backend)
    table.add_row("Pending backups", pending)
    table.add_row("Automatic backups", "on" if config.auto_backup else "off")
    console.print(table)
    return 0 if ok else 1


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_list(args: argparse.Namespace) -> int:
    """List backups, newest first."""
    return asyncio.run(_async_list(args))


def cmd_backup(args: argparse.Namespace) -> int:
    """Take a backup now."""
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Replace the live database with a backup.

    Without ``--yes`` only the plan is shown.
    """
    return asyncio.run(_async_restore(args))


def cmd_delete(args: argparse.Namespace) -> int:
    return asyncio.run(_async_delete(args))


def cmd_note(args: argparse.Namespace) -> int:
    return asyncio.run(_async_note(args))


def cmd_auto(args: argparse.Namespace) -> int:
    """Show automatic backup settings.

    Needs no database connection, so it only loads the configuration.
    """
    config_path = getattr(args, "config", None)
    try:
        config = load_config(
            Path(config_path) if config_path else None,
            env_prefix=getattr(args, "env_prefix", ""),
        )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    state = "[green]enabled[/green]" if config.auto_backup else "[dim]disabled[/dim]"
    console.print(f"Automatic backups: {state}")
    console.print(f"  Schedule: [cyan]{config.backup_schedule}[/cyan]")
    if config.auto_backup and config.environment == "development":
        console.print("  [yellow]Skipped while environment is development[/yellow]")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    return asyncio.run(_async_status(args))


def cmd_retained(args: argparse.Namespace) -> int:
    return asyncio.run(_async_retained(args))


def cmd_drop_retained(args: argparse.Namespace) -> int:
    return asyncio.run(_async_drop_retained(args))


# ============================================================================
# Main entry point
# ============================================================================


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-backups",
        description="PostgreSQL backups and safe restores",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to backups.toml (default: ./backups.toml if present)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DATABASE_URL)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging, including client commands",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_list = subparsers.add_parser("list", help="List backups, newest first")
    p_list.set_defaults(func=cmd_list)

    p_backup = subparsers.add_parser("backup", help="Take a backup now")
    p_backup.add_argument("--note", default=None, help="Note stored with the backup")
    p_backup.set_defaults(func=cmd_backup)

    p_restore = subparsers.add_parser(
        "restore",
        help="Replace the live database with a backup",
    )
    p_restore.add_argument("url", help="Backup URL or store key")
    p_restore.add_argument(
        "--production",
        action="store_true",
        help="Take a pre-restore backup even outside production",
    )
    p_restore.add_argument("--yes", action="store_true", help="Actually perform the restore")
    p_restore.set_defaults(func=cmd_restore)

    p_delete = subparsers.add_parser("delete", help="Delete a backup record")
    p_delete.add_argument("id", help="Backup ID")
    p_delete.set_defaults(func=cmd_delete)

    p_note = subparsers.add_parser("note", help="Set the note of a backup")
    p_note.add_argument("id", help="Backup ID")
    p_note.add_argument("text", help="Note text")
    p_note.set_defaults(func=cmd_note)

    p_auto = subparsers.add_parser("auto", help="Show automatic backup settings")
    p_auto.set_defaults(func=cmd_auto)

    p_status = subparsers.add_parser("status", help="Show configuration and database reachability")
    p_status.set_defaults(func=cmd_status)

    p_retained = subparsers.add_parser(
        "retained",
        help="List original databases kept by earlier restores",
    )
    p_retained.set_defaults(func=cmd_retained)

    p_drop = subparsers.add_parser("drop-retained", help="Drop one retained database")
    p_drop.add_argument("name", help="Retained database name")
    p_drop.add_argument("--confirm", action="store_true", help="Actually drop it")
    p_drop.set_defaults(func=cmd_drop_retained)

    args = parser.parse_args()
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
