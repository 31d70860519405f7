"""Typer CLI for Giannicorp Admin: backups, seeding, KPIs and the relay."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gcadmin.audit import AuditLogger, create_correlation_id
from gcadmin.backup import BackupEngine, BackupError, get_user_friendly_summary
from gcadmin.config import get_settings, validate_all_settings
from gcadmin.models.snapshot import ImportMode
from gcadmin.queries import calc_kpis, export_finance_csv
from gcadmin.services.storage import (
    SQLiteAuditStorage,
    SQLiteStore,
    StorageError,
    ensure_seed,
)

app = typer.Typer(
    name="gcadmin",
    help="Giannicorp Admin - backup/restore and back office tools",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="SQLite store file (default: GCADMIN_STORE_PATH or data/gcadmin.db)",
    ),
):
    """Giannicorp Admin command line."""
    status = validate_all_settings()
    broken = [name for name, ok in status.items() if ok is False]
    if broken:
        for name in broken:
            console.print(f"[red]❌ {name}: {escape(status[f'{name}_error'])}[/red]")
        raise typer.Exit(1)

    app_settings = get_settings().app
    logging.basicConfig(
        level=logging.DEBUG if app_settings.debug_mode else logging.WARNING,
        format="%(message)s",
    )
    logger.debug("cli_started", environment=app_settings.app_environment, db=db)
    ctx.obj = {"db": db}


def _open(ctx: typer.Context) -> tuple[SQLiteStore, AuditLogger]:
    store = SQLiteStore((ctx.obj or {}).get("db"))
    return store, AuditLogger(SQLiteAuditStorage(store))


def _run(ctx: typer.Context, work):
    """Run `work(store, audit)` on a fresh store and always close it."""
    store, audit = _open(ctx)

    async def runner():
        try:
            return await work(store, audit)
        except StorageError as e:
            await audit.log_error(type(e).__name__, str(e))
            raise
        finally:
            await store.close()

    try:
        return asyncio.run(runner())
    except (BackupError, StorageError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command()
def export(
    ctx: typer.Context,
    out: Optional[Path] = typer.Option(
        None,
        "--out", "-o",
        help="Directory for the backup file (default: GCADMIN_BACKUP_EXPORT_DIR)",
    ),
):
    """Write a checksummed snapshot of the whole store."""
    async def work(store, audit):
        return await BackupEngine(store, audit).export_to_file(out)

    path = _run(ctx, work)
    console.print(f"[green]Backup written to {path}[/green]")


@app.command("dry-run")
def dry_run(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Backup file to inspect"),
):
    """Validate a backup file and compare it with the store. Writes nothing."""
    async def work(store, audit):
        return await BackupEngine(store, audit).dry_run(file)

    result = _run(ctx, work)
    console.print(escape(get_user_friendly_summary(result)))
    if not result.ok:
        raise typer.Exit(1)


@app.command("import")
def import_backup(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Backup file to restore"),
    mode: ImportMode = typer.Option(
        ImportMode.MERGE,
        "--mode", "-m",
        case_sensitive=False,
        help="merge: upsert by id, replace: wipe all collections first",
    ),
    yes: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip the confirmation prompt",
    ),
):
    """Preview, confirm and atomically import a backup file."""
    correlation_id = create_correlation_id()

    async def preview(store, audit):
        return await BackupEngine(store, audit).dry_run(file, correlation_id)

    result = _run(ctx, preview)
    console.print(escape(get_user_friendly_summary(result)))
    if not result.ok or not result.checksum_ok:
        raise typer.Exit(1)

    if not yes:
        warning = (
            "This REPLACES all nine collections. Continue?"
            if mode == ImportMode.REPLACE
            else "Merge this backup into the store?"
        )
        typer.confirm(warning, abort=True)

    async def commit(store, audit):
        return await BackupEngine(store, audit).import_(file, mode, correlation_id)

    outcome = _run(ctx, commit)
    changed = ", ".join(outcome.changed_collections) or "nothing"
    console.print(f"[green]Import committed ({outcome.mode.value}). Changed: {changed}[/green]")


@app.command()
def seed(ctx: typer.Context):
    """Fill an empty store with demo data."""
    async def work(store, audit):
        return await ensure_seed(store, audit)

    if _run(ctx, work):
        console.print("[green]Demo data added.[/green]")
    else:
        console.print("Store already has services; nothing seeded.")


@app.command()
def kpi(ctx: typer.Context):
    """Show the dashboard KPIs."""
    async def work(store, audit):
        return await calc_kpis(store)

    kpis = _run(ctx, work)
    table = Table(title="Dashboard")
    table.add_column("KPI", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in kpis.to_dict().items():
        table.add_row(name, str(value))
    console.print(table)


@app.command("finance-csv")
def finance_csv(
    ctx: typer.Context,
    out: Optional[Path] = typer.Option(
        None,
        "--out", "-o",
        help="Write to this file instead of stdout",
    ),
):
    """Export incomes and expenses as CSV."""
    async def work(store, audit):
        return await export_finance_csv(store)

    text = _run(ctx, work)
    if out is None:
        typer.echo(text)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")
    console.print(f"[green]Finance export written to {out}[/green]")


@app.command()
def relay():
    """Serve the webhook relay."""
    from gcadmin.relay.server import main as serve

    settings = get_settings().relay
    console.print(f"Relay listening on {settings.host}:{settings.port}")
    serve()


if __name__ == "__main__":
    app()
