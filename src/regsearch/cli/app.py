"""Unified CLI entry point for regsearch.

Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (REGSEARCH_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import logging

import typer

from regsearch.cli.search_cmd import search_command
from regsearch.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("regsearch")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "regsearch: CAPTCHA-gated registry search CLI. "
    "Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml"
    " -> env vars (REGSEARCH_* with double underscores) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.command("search")(search_command)
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"regsearch {VERSION}")
        raise typer.Exit()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
