"""``regsearch settings``: print and sanity-check the resolved configuration."""

from __future__ import annotations

import json
import shutil
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

settings_app = typer.Typer(help="Inspect and validate regsearch configuration.")
console = Console()

_SECTIONS = ("browser", "target", "captcha", "search", "diagnostics")


@settings_app.command("show")
def show_settings(
    section: Optional[str] = typer.Argument(None, help=f"Only print one section: {', '.join(_SECTIONS)}."),
) -> None:
    """Print the resolved settings as JSON."""
    from regsearch.settings import get_settings

    dumped = get_settings().model_dump(mode="json")
    if section is not None:
        if section not in _SECTIONS:
            console.print(f"[red]Unknown section {section!r}.[/red] Choose from: {', '.join(_SECTIONS)}")
            raise typer.Exit(code=1)
        dumped = {section: dumped[section]}
    console.print_json(json.dumps(dumped, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Load every config layer and report the values a search depends on."""
    from regsearch.settings.config import Settings

    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[red]✗[/red] Settings validation failed ({e.error_count()} error(s)):")
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"])
            console.print(f"  {loc}: {err['msg']}")
        raise typer.Exit(code=1)

    console.print("[green]✓[/green] Settings are valid.")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Environment", settings.env)
    table.add_row("Target URL", settings.target.url)
    table.add_row("Required markers", ", ".join(settings.target.required_markers))
    table.add_row("Binarize threshold", str(settings.captcha.threshold))
    table.add_row("Attempts", f"{settings.search.max_attempts} x {settings.search.attempt_timeout_s:g}s")
    table.add_row("Diagnostics dir", settings.diagnostics.output_dir)
    console.print(table)

    tesseract = settings.captcha.tesseract_cmd or shutil.which("tesseract")
    if not tesseract:
        console.print("[yellow]![/yellow] tesseract binary not found on PATH; CAPTCHA solving will fail.")
