"""
tendertrack CLI - Command Line Interface

Entry point for spreadsheet uploads, upload history and tender lifecycle
operations.
"""

import json
from pathlib import Path

import click
from rich.console import Console
from tabulate import tabulate

from tendertrack import __version__
from tendertrack.config import config
from tendertrack.logger import setup_logging


def _display_url(url: str) -> str:
    return url.split("@")[1] if "@" in url else url


@click.group()
@click.version_option(version=__version__, prog_name="tendertrack")
@click.option("--db-url", help="Database URL (overrides config.yaml)")
@click.option("--log-level", help="Logging level (default from config)")
@click.pass_context
def cli(ctx, db_url, log_level):
    """tendertrack - Tender spreadsheet ingestion and tracking.

    Imports tender and tender-result spreadsheets, keeps them free of
    duplicates, and tracks each tender through its status workflow.
    """
    ctx.ensure_object(dict)
    setup_logging(log_level)
    if db_url:
        from tendertrack.database import configure
        configure(db_url)
        ctx.obj["db_url"] = db_url


# =============================================================================
# Init & Config Commands
# =============================================================================

@cli.command()
@click.option("--drop", is_flag=True, help="Drop existing tables before creating")
@click.pass_context
def init(ctx, drop):
    """Initialize the database and create all tables."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from tendertrack.database import init_db, drop_db, get_engine

    click.echo("Initializing tendertrack database...")

    try:
        # Test connection
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        click.echo(f"  Connected to: {_display_url(str(engine.url))}")
    except SQLAlchemyError as e:
        click.echo(click.style(f"  Database connection failed: {e}", fg="red"))
        click.echo("\nCheck your config.yaml database settings or environment variables.")
        raise SystemExit(1)

    if drop:
        if click.confirm("This will DELETE all existing data. Continue?"):
            click.echo("  Dropping existing tables...")
            drop_db()
        else:
            click.echo("Aborted.")
            return

    click.echo("  Creating tables...")
    init_db()
    click.echo(click.style("Database initialized successfully!", fg="green"))


@cli.command("config")
@click.option("--show", is_flag=True, help="Show current configuration")
def show_config(show):
    """View configuration."""
    if show:
        click.echo("\n=== Current Configuration ===\n")
        click.echo(f"Database URL: {_display_url(config.database_url)}")
        click.echo(f"Tracked company: {', '.join(config.tracked_company_aliases) or '[NOT SET]'}")
        click.echo(f"Currency scale: {config.currency_scale}")
        click.echo(f"Day-first dates: {config.date_dayfirst}")
        click.echo(f"Default deadline: +{config.default_deadline_days} days")
        click.echo(f"Progress interval: {config.progress_interval} rows")
        click.echo(f"Sweep interval: {config.sweep_interval_hours} hours")
        click.echo(f"Sweep after upload: {config.sweep_after_ingest}")
        click.echo(f"\nScoring:")
        for key, value in config.scoring.items():
            click.echo(f"  {key}: {value}")
    else:
        click.echo("Edit config.yaml directly or set environment variables.")
        click.echo("Use 'tendertrack config --show' to view current settings.")


# =============================================================================
# Ingestion Commands
# =============================================================================

@cli.group()
def ingest():
    """Spreadsheet upload commands."""
    pass


def _run_ingest(kind: str, file: str, user: str | None, show_progress: bool, as_json: bool):
    from tendertrack.ingestion import INGESTORS, RichProgressReporter

    path = Path(file)
    data = path.read_bytes()
    ingestor = INGESTORS[kind]()

    if show_progress and not as_json:
        with RichProgressReporter(f"Importing {path.name}", console=Console(stderr=True)) as reporter:
            summary = ingestor.ingest(data, path.name, uploaded_by=user, on_progress=reporter)
    else:
        summary = ingestor.ingest(data, path.name, uploaded_by=user)

    if as_json:
        click.echo(json.dumps(summary.as_dict(), indent=2, default=str))
    else:
        color = {"completed": "green", "cancelled": "yellow"}.get(summary.status, "red")
        click.echo(click.style(f"\nUpload {summary.status}", fg=color, bold=True))
        rows = [
            ["Added", summary.records_added],
            ["Duplicates", summary.duplicates_skipped],
            ["Row errors", summary.errors_encountered],
            ["Rows", summary.total_rows],
            ["Sheets processed", summary.sheets_processed],
            ["Sheets skipped", summary.sheets_skipped],
        ]
        if kind == "tenders":
            rows += [
                ["GeM", summary.gem_added],
                ["Non-GeM", summary.non_gem_added],
                ["Reactivated", summary.reactivated],
            ]
        click.echo(tabulate(rows, tablefmt="simple"))
        if summary.error:
            click.echo(click.style(f"\nError ({summary.error_kind}): {summary.error}", fg="red"))
        for error in summary.row_errors[:10]:
            click.echo(f"  {error}")

    if not summary.success:
        raise SystemExit(1)


@ingest.command("tenders")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--user", "-u", help="Uploader recorded in the audit log")
@click.option("--no-progress", is_flag=True, help="Hide the progress bar")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
def ingest_tenders_cmd(file, user, no_progress, as_json):
    """Import an active tenders spreadsheet."""
    _run_ingest("tenders", file, user, not no_progress, as_json)


@ingest.command("results")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--user", "-u", help="Uploader recorded in the audit log")
@click.option("--no-progress", is_flag=True, help="Hide the progress bar")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
def ingest_results_cmd(file, user, no_progress, as_json):
    """Import a tender results spreadsheet."""
    _run_ingest("results", file, user, not no_progress, as_json)


@cli.command("uploads")
@click.option("--limit", "-n", default=20, help="Number of uploads to show")
@click.option("--kind", type=click.Choice(["tenders", "results"]))
def uploads(limit, kind):
    """Show upload history."""
    from tendertrack.database import TenderStore

    history = TenderStore().list_uploads(limit=limit, kind=kind)
    if not history:
        click.echo("No uploads found. Run 'tendertrack ingest tenders FILE' to start.")
        return

    rows = []
    for u in history:
        status_color = {
            "completed": "green",
            "failed": "red",
            "cancelled": "yellow",
        }.get(u.status.value, "white")

        rows.append([
            u.id,
            u.file_name[:40],
            u.upload_kind,
            click.style(u.status.value, fg=status_color),
            u.entries_added,
            u.entries_duplicate,
            u.entries_rejected,
            u.uploaded_by or "-",
            u.uploaded_at.strftime("%Y-%m-%d %H:%M") if u.uploaded_at else "-",
        ])

    click.echo(tabulate(
        rows,
        headers=["ID", "File", "Kind", "Status", "Added", "Dup", "Errors", "By", "Uploaded"],
        tablefmt="simple",
    ))


# =============================================================================
# Lifecycle Commands
# =============================================================================

@cli.command()
@click.option("--progress", "show_progress", is_flag=True, help="Show a progress bar")
def sweep(show_progress):
    """Mark expired, unassigned tenders as missed opportunities."""
    from tendertrack.lifecycle import MissedOpportunitySweeper

    result = MissedOpportunitySweeper().sweep(show_progress=show_progress)

    if not result.transitioned:
        click.echo("No expired tenders found.")
        return

    click.echo(click.style(f"Marked {result.processed_count} tender(s) as missed:", fg="yellow"))
    rows = [
        [t.id, t.title[:50], t.organization[:30], t.deadline.strftime("%Y-%m-%d")]
        for t in result.transitioned
    ]
    click.echo(tabulate(rows, headers=["ID", "Title", "Organization", "Deadline"], tablefmt="simple"))


@cli.command("status")
@click.argument("tender_id", type=int)
@click.argument("new_status", type=click.Choice([
    "draft", "active", "assigned", "submitted", "won", "lost",
    "missed_opportunity", "not_relevant",
]))
@click.option("--user", "-u", help="Actor recorded in the activity log")
def set_status(tender_id, new_status, user):
    """Move a tender to a new status."""
    from tendertrack.database import TenderStatus, TenderStore
    from tendertrack.exceptions import InvalidTransitionError, RecordNotFoundError

    try:
        old = TenderStore().update_status(tender_id, TenderStatus(new_status), actor=user)
    except (InvalidTransitionError, RecordNotFoundError) as e:
        click.echo(click.style(str(e), fg="red"))
        raise SystemExit(1)

    click.echo(click.style(f"Tender {tender_id}: {old.value} -> {new_status}", fg="green"))


@cli.command("activity")
@click.argument("tender_id", type=int)
def activity(tender_id):
    """Show the activity log of a tender."""
    from tendertrack.database import TenderStore

    entries = TenderStore().activity_for(tender_id)
    if not entries:
        click.echo(f"No activity recorded for tender {tender_id}.")
        return

    rows = [
        [
            e.created_at.strftime("%Y-%m-%d %H:%M") if e.created_at else "-",
            e.action,
            e.actor or "-",
            json.dumps(e.details or {}, default=str)[:80],
        ]
        for e in entries
    ]
    click.echo(tabulate(rows, headers=["When", "Action", "Actor", "Details"], tablefmt="simple"))


@cli.command("schedule")
def schedule():
    """Run the scheduler for automatic missed-opportunity sweeps."""
    from tendertrack.scheduler import start_scheduler

    click.echo("Starting scheduler...")
    click.echo(f"Sweep interval: {config.sweep_interval_hours} hours")

    start_scheduler(foreground=True)


if __name__ == "__main__":
    cli()
