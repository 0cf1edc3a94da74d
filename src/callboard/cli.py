from __future__ import annotations

import logging

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.table import Table

from callboard.db import init_db
from callboard.exceptions import CallboardError
from callboard.services import analytics
from callboard.services.sync import sync_contacts
from callboard.services.vapi import CallFilters, client_for_user

app = typer.Typer(help="Callboard — restaurant call dashboard")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the Callboard API server."""
    import uvicorn

    uvicorn.run("callboard.web:create_app", host=host, port=port, reload=reload, factory=True)


@app.command("init-db")
def init_database() -> None:
    """Create the database schema."""
    init_db()
    console.print("[green]Database ready.[/green]")


@app.command()
def sync(user_id: str = typer.Argument(..., help="Owning user id")) -> None:
    """Pull the Airtable contact list into USER_ID's customers."""
    init_db()
    try:
        result = sync_contacts(user_id)
    except CallboardError as exc:
        console.print(f"[red]Sync failed:[/red] {exc}")
        raise typer.Exit(code=1)

    console.print(
        f"[green]{result.created} created[/green], [cyan]{result.updated} updated[/cyan], "
        f"[yellow]{result.skipped} skipped[/yellow] of {result.total}"
    )
    if result.skipped_records:
        table = Table(title="Skipped Records")
        table.add_column("Record", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Phone", style="white")
        table.add_column("Reason", style="yellow")
        for s in result.skipped_records:
            table.add_row(s.external_id, s.name or "—", s.phone or "—", s.reason)
        console.print(table)


@app.command()
def stats(
    user_id: str = typer.Argument(..., help="Owning user id"),
    time_range: str = typer.Option("7d", "--range", help="7d, 30d or 90d"),
    assistant: str | None = typer.Option(None, help="Only calls handled by this assistant"),
) -> None:
    """Show call analytics for USER_ID."""
    init_db()
    try:
        window = analytics.parse_range(time_range)
        client = client_for_user(user_id)
        calls = client.fetch_all_calls(
            CallFilters(limit=100, assistant_id=assistant, created_at_gt=window.start)
        )
    except CallboardError as exc:
        console.print(f"[red]Could not load calls:[/red] {exc}")
        raise typer.Exit(code=1)

    result = analytics.aggregate(calls, window)

    table = Table(title=f"Calls, last {time_range}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white", justify="right")
    table.add_row("Total calls", str(result.total_calls))
    table.add_row("Success rate", f"{result.success_rate:.1f}%")
    table.add_row("Avg duration", f"{result.avg_duration:.0f}s")
    table.add_row("Total cost", f"${result.total_cost:.2f}")
    table.add_row("Calls today", str(result.calls_today))
    console.print(table)

    if result.daily_trends:
        table = Table(title="Daily Trend")
        table.add_column("Date", style="yellow")
        table.add_column("Calls", justify="right")
        table.add_column("Successful", justify="right")
        table.add_column("Cost", justify="right")
        for day in result.daily_trends:
            table.add_row(day.label, str(day.calls), str(day.successful), f"${day.cost:.2f}")
        console.print(table)

    if result.call_types:
        table = Table(title="Call Intents")
        table.add_column("Intent", style="magenta")
        table.add_column("Calls", justify="right")
        table.add_column("Share", justify="right")
        for t in sorted(result.call_types, key=lambda t: t.count, reverse=True):
            table.add_row(t.type, str(t.count), f"{t.percentage:.1f}%")
        console.print(table)
