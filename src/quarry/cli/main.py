"""Quarry CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from quarry.cli.add import add_app
from quarry.cli.base import base_app
from quarry.cli.init import init_cmd
from quarry.cli.lifecycle import clear_cmd, refresh_cmd
from quarry.cli.remove import remove_cmd
from quarry.cli.status import status_cmd
from quarry.cli.sync import sync_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("quarry")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"quarry {_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route the quarry.* loggers to stderr through rich."""
    logger = logging.getLogger("quarry")
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            rich_tracebacks=True,
        )
        logger.addHandler(handler)
    logger.propagate = False


app = typer.Typer(
    name="quarry",
    help=(
        "Quarry — knowledge-base ingestion CLI.\n\n"
        "  quarry add    Register files, URLs, sitemaps, directories and notes.\n"
        "  quarry sync   Import new pages from a Notion database, exactly once."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log every skipped, imported and failed page."),
    ] = False,
) -> None:
    """Quarry — knowledge-base ingestion CLI."""
    _configure_logging(verbose)


app.command("init")(init_cmd)
app.command("sync")(sync_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)
app.command("refresh")(refresh_cmd)
app.command("clear")(clear_cmd)
app.add_typer(base_app, name="base")
app.add_typer(add_app, name="add")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Quarry version."""
    typer.echo(f"quarry {_version()}")


if __name__ == "__main__":
    app()
