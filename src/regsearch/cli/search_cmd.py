"""CLI command for running a registry search."""

from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from regsearch.exceptions import RegSearchError

console = Console()


def search_command(
    term: str = typer.Argument(..., help="Company or LLP name to search for."),
    headful: bool = typer.Option(False, "--headful", help="Show the browser window."),
    user_agent: Optional[List[str]] = typer.Option(
        None, "--user-agent", "-u", help="User-agent candidate (repeatable). Overrides the configured pool."
    ),
    attempts: Optional[int] = typer.Option(None, "--attempts", "-a", min=1, max=10, help="Maximum search attempts."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Search the registry for TERM and print the matching records."""
    from regsearch.models.search import SearchConfig, SearchStatus
    from regsearch.search.orchestrator import run_search
    from regsearch.settings import get_settings

    settings = get_settings()
    pool = frozenset(user_agent) if user_agent else frozenset(settings.browser.user_agents)
    config = SearchConfig(headless=not headful and settings.browser.headless, user_agent_pool=pool)

    if not as_json:
        console.print(Panel(f"[bold]Searching:[/bold] {term}", title="regsearch", border_style="blue"))

    try:
        if as_json:
            result = run_search(term, config, settings, max_attempts=attempts)
        else:
            with Progress(
                SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console, transient=True
            ) as progress:
                progress.add_task("Running search...", total=None)
                result = run_search(term, config, settings, max_attempts=attempts)
    except RegSearchError as e:
        console.print(f"[red]✗[/red] Search failed ({type(e).__name__}): {e}")
        if e.diagnostics:
            console.print(f"  Page: {e.diagnostics.url}")
            if e.diagnostics.screenshot_path:
                console.print(f"  Screenshot: {e.diagnostics.screenshot_path}")
        raise typer.Exit(code=1)

    rejected = result.status == SearchStatus.REJECTED
    if as_json:
        typer.echo(result.to_json())
        if rejected:
            raise typer.Exit(code=2)
        return

    if rejected:
        console.print(f"[yellow]⚠[/yellow] Search rejected: {result.error_text}")
        raise typer.Exit(code=2)

    if result.is_empty:
        console.print("[yellow]No matching records.[/yellow]")
        return

    console.print(_records_table(result.records))
    console.print(f"[green]✓[/green] {len(result.records)} record(s)")


def _records_table(records: list[dict[str, str]]) -> Table:
    columns: list[str] = []
    for record in records:
        for key in record:
            if key not in columns:
                columns.append(key)

    table = Table(show_lines=False)
    for column in columns:
        table.add_column(column.replace("_", " ").title())
    for record in records:
        table.add_row(*(record.get(column, "") for column in columns))
    return table
