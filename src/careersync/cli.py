"""Typer CLI entry point for careersync."""

import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from careersync.config import load_config

app = typer.Typer(
    name="careersync",
    help="careersync: job feed sync and search for the careers site",
    no_args_is_help=True,
)
console = Console()

_config_path: Path | None = None


@app.callback()
def main(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Load configuration and set up logging."""
    global _config_path
    _config_path = config
    level = "DEBUG" if verbose else _get_config().logging.level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _get_config():
    return load_config(_config_path)


def _get_engine():
    from careersync.db import init_db

    return init_db(_get_config().effective_database_url)


def _get_db():
    from careersync.db import get_session

    return get_session(_get_engine())


@app.command()
def sync(
    category: list[str] | None = typer.Option(None, "--category", "-k", help="Category codes (overrides config)"),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Parallel category fetches"),
    deferred: bool = typer.Option(False, "--deferred", help="Store postings now, geocode later with 'backfill'"),
):
    """Pull every category feed, upsert postings and soft-delete vanished ones."""
    from careersync.errors import SyncError
    from careersync.sync.orchestrator import SyncOrchestrator

    config = _get_config()
    if category:
        unknown = [c for c in category if c not in config.sync.categories]
        if unknown:
            console.print(f"[red]Unknown category codes:[/red] {', '.join(unknown)}")
            raise typer.Exit(1)
        config.sync.categories = {c: config.sync.categories[c] for c in category}
    if workers:
        config.sync.max_workers = workers
    if deferred:
        config.sync.geocode_mode = "deferred"

    console.print(f"[bold]Syncing {len(config.sync.categories)} categories...[/bold]")
    orchestrator = SyncOrchestrator.from_config(config, _get_engine())
    try:
        report = orchestrator.run()
    except SyncError as e:
        console.print(f"[red]Sync failed:[/red] {e}")
        raise typer.Exit(1)
    finally:
        orchestrator.fetcher.close()
        orchestrator.geocoder.close()

    failed = [c for c in report.categories if not c.ok]
    if failed:
        table = Table(title="Failed categories")
        table.add_column("Code", style="dim")
        table.add_column("Category", style="bold")
        table.add_column("Error")
        for c in failed:
            table.add_row(c.code, c.name, c.error or "")
        console.print(table)

    status_style = "green" if report.status.value == "success" else "yellow"
    console.print(Panel(
        f"[bold]Status:[/bold] [{status_style}]{report.status.value}[/{status_style}]\n"
        f"[bold]Fetched:[/bold] {report.fetched} from {report.categories_ok} categories\n"
        f"[bold]New:[/bold] {report.inserted}  [bold]Updated:[/bold] {report.updated}  "
        f"[bold]Deleted:[/bold] {report.deleted}\n"
        f"[bold]Failed items:[/bold] {report.failed_items}  "
        f"[bold]Missing req id:[/bold] {report.missing_req_id}\n"
        f"[bold]Geocode misses:[/bold] {report.geocode_misses}  "
        f"[bold]Geocode failures:[/bold] {report.geocode_failures}",
        title="Sync",
        expand=False,
    ))


@app.command()
def backfill(
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max postings to geocode"),
):
    """Geocode active postings that were stored without coordinates."""
    from careersync.sync.orchestrator import SyncOrchestrator

    config = _get_config()
    orchestrator = SyncOrchestrator.from_config(config, _get_engine())
    try:
        report = orchestrator.backfill_coordinates(limit=limit or config.sync.backfill_limit)
    finally:
        orchestrator.fetcher.close()
        orchestrator.geocoder.close()

    console.print(
        f"[bold green]Done![/bold green] {report.updated}/{report.candidates} located, "
        f"{report.geocode_misses} misses, {report.geocode_failures} failures."
    )


@app.command()
def search(
    keywords: str = typer.Option("", "--keywords", "-q", help="Keyword(s) in title or description"),
    location: str = typer.Option("", "--location", "-l", help="Exact location"),
    category: str = typer.Option("", "--category", "-k", help="Exact category name"),
    zip_code: str = typer.Option("", "--zip", help="ZIP code"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    order: str = typer.Option("date", "--order", "-o", help="Sort order token"),
):
    """Search active postings."""
    from careersync.search.service import SearchService, normalize_filter

    config = _get_config()
    session = _get_db()
    service = SearchService(session, page_size=config.search.page_size)
    result = service.search(normalize_filter({
        "keywords": keywords,
        "location": location,
        "category": category,
        "zip": zip_code,
        "spage": page,
        "o": order,
    }))
    session.close()

    if result.error:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(1)

    postings = result.postings
    if not postings.items:
        console.print("[yellow]No postings found.[/yellow]")
        return

    table = Table(title=f"Postings (page {postings.page}/{postings.total_pages}, {postings.total} results)")
    table.add_column("Req", style="dim", justify="right")
    table.add_column("Title", style="bold", max_width=40)
    table.add_column("Category", max_width=25)
    table.add_column("Location", max_width=25)
    table.add_column("Posted", width=10)
    table.add_column("Map", width=3)

    for p in postings.items:
        table.add_row(
            str(p.req_id) if p.req_id is not None else "—",
            p.title,
            p.category,
            p.location,
            p.post_date.strftime("%Y-%m-%d") if p.post_date else "—",
            Text("✓", style="green") if p.coordinates else Text("·", style="dim"),
        )

    console.print(table)


@app.command()
def show(
    req_id: int = typer.Argument(help="Requisition id"),
):
    """Show one posting, including deleted ones."""
    from careersync.db import get_posting_by_req_id

    session = _get_db()
    posting = get_posting_by_req_id(session, req_id)
    session.close()

    if posting is None:
        console.print(f"[red]Posting not found: {req_id}[/red]")
        raise typer.Exit(1)

    state = "[green]active[/green]" if posting.active else f"[red]deleted {posting.deleted_at:%Y-%m-%d %H:%M}[/red]"
    panel_content = (
        f"[bold]{posting.title}[/bold]\n"
        f"Category: {posting.category}\n"
        f"Location: {posting.location}\n"
        f"Link: {posting.link}\n"
        f"State: {state}\n"
    )
    if posting.coordinates:
        panel_content += f"Coordinates: {posting.latitude:.5f}, {posting.longitude:.5f}\n"
    if posting.post_date:
        panel_content += f"Posted: {posting.post_date.strftime('%Y-%m-%d')}\n"
    if posting.updated_at:
        panel_content += f"Updated: {posting.updated_at.strftime('%Y-%m-%d %H:%M')}\n"

    console.print(Panel(panel_content, title=f"Posting {posting.req_id}", expand=False))


@app.command()
def facets():
    """List locations (with map counts) and categories of active postings."""
    from careersync.search.service import SearchService

    session = _get_db()
    service = SearchService(session)
    markers = service.map_markers()
    result = service.facets()
    session.close()

    table = Table(title=f"Locations ({len(markers)})")
    table.add_column("Location", style="bold")
    table.add_column("Postings", justify="right")
    table.add_column("Coordinates")
    for m in markers:
        coords = f"{m.lat:.4f}, {m.lng:.4f}" if m.lat is not None else Text("not geocoded", style="dim")
        table.add_row(m.location, str(m.count), coords)
    console.print(table)

    console.print(f"\n[bold]Categories ({len(result.categories)}):[/bold] {', '.join(result.categories)}")


@app.command()
def runs(
    limit: int = typer.Option(10, "--limit", "-n", help="Max runs"),
):
    """Show recent sync runs."""
    from careersync.db import get_sync_runs

    session = _get_db()
    rows = get_sync_runs(session, limit=limit)

    if not rows:
        session.close()
        console.print("[yellow]No sync runs recorded yet. Run 'careersync sync' first.[/yellow]")
        return

    table = Table(title="Sync runs")
    table.add_column("Started", width=16)
    table.add_column("Status", width=8)
    table.add_column("Fetched", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Failed cat.", justify="right")
    table.add_column("Error", max_width=40)

    for r in rows:
        status_style = {"success": "green", "partial": "yellow", "error": "red"}.get(r.status, "")
        table.add_row(
            r.started_at.strftime("%Y-%m-%d %H:%M"),
            Text(r.status, style=status_style),
            str(r.fetched),
            str(r.inserted),
            str(r.updated),
            str(r.deleted),
            str(r.categories_failed),
            r.error_message or "",
        )
    session.close()

    console.print(table)


@app.command()
def review():
    """List postings stored without a requisition id."""
    from careersync.db import postings_needing_review

    session = _get_db()
    postings = postings_needing_review(session)
    session.close()

    if not postings:
        console.print("[green]No postings need review.[/green]")
        return

    table = Table(title=f"Postings without requisition id ({len(postings)})")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Title", style="bold", max_width=40)
    table.add_column("Category", max_width=25)
    table.add_column("Link", max_width=50)
    for p in postings:
        table.add_row(str(p.id), p.title or "—", p.category, p.link)
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option(None, "--host", "-h", help="Bind host (default: from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default: from config)"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload for development"),
):
    """Start the query API."""
    try:
        import uvicorn
    except ImportError:
        console.print("[red]Web dependencies not installed. Run: pip install careersync[web][/red]")
        raise typer.Exit(1)

    config = _get_config()
    if _config_path is not None:
        # The app factory reloads config in its own process.
        os.environ["CAREERSYNC_CONFIG"] = str(_config_path)
    bind_host = host or config.web.host
    bind_port = port or config.web.port
    do_reload = reload or config.web.reload

    console.print("[bold]Starting careersync API[/bold]")
    console.print(f"  http://{bind_host}:{bind_port}")
    if config.scheduler.enabled:
        console.print(f"  Scheduled sync: [green]{config.scheduler.cron}[/green]")
    else:
        console.print("  Scheduled sync: [dim]disabled[/dim]")

    uvicorn.run(
        "careersync.web.app:create_app",
        host=bind_host,
        port=bind_port,
        reload=do_reload,
        factory=True,
    )


@app.command()
def config_cmd():
    """Show current configuration."""
    config = _get_config()
    console.print(Panel(str(config.model_dump_json(indent=2)), title="Configuration"))


if __name__ == "__main__":
    app()
