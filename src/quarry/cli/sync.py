"""quarry sync — import a knowledge base's Notion database.

Walks the whole database (10 rows per request), skips pages whose sanitized
title is already in the knowledge base, skips empty pages, and writes every
new page as a Markdown file under the storage root. Pages that fail are
reported and skipped; re-running is safe and only imports what is missing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from quarry.cli.common import DEFAULT_DB, open_service, resolve_base
from quarry.cli.errors import (
    err_notion_config_missing,
    err_source_unavailable,
    err_unsupported_source,
)
from quarry.sync.engine import DUPLICATE, EMPTY, FAILED, IMPORTED
from quarry.sync.errors import ConfigMissing, SourceUnavailable, UnsupportedSource

console = Console()


def sync_cmd(
    base: Annotated[str, typer.Option("--base", "-b", help="Knowledge base ID or name.")],
    source: Annotated[
        str,
        typer.Option("--source", help="External source type."),
    ] = "notion",
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", envvar="NOTION_API_KEY", help="Notion integration token."),
    ] = None,
    database_id: Annotated[
        str | None,
        typer.Option("--database-id", help="Notion database ID (overrides the base setting)."),
    ] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Import new pages from an external source into a knowledge base."""
    with open_service(db) as service:
        kb = resolve_base(service, base)
        console.print(f"\n[bold]→ {source} → {kb.name}[/]")
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
                console=console,
            ) as prog:
                prog.add_task("Reading database…", total=None)
                items, report = service.import_from_external_source(
                    kb.id, source, api_key=api_key, database_id=database_id
                )
        except UnsupportedSource:
            console.print(err_unsupported_source(source))
            raise typer.Exit(1)
        except ConfigMissing as exc:
            console.print(err_notion_config_missing(exc.missing, kb.name))
            raise typer.Exit(1)
        except SourceUnavailable as exc:
            console.print(err_source_unavailable(str(exc)))
            raise typer.Exit(1)

    console.print(
        f"  [green]✓[/] {report.count(IMPORTED)} imported  |  "
        f"{report.count(DUPLICATE)} already present  |  "
        f"{report.count(EMPTY)} empty  |  "
        f"{report.count(FAILED)} failed"
    )
    console.print(f"  [dim]{report.records_seen} pages read in {report.pages} request(s)[/]")
    for item in items:
        console.print(f"    [green]+[/] {item.artifact.name}")
    for failure in report.failures:
        console.print(f"    [yellow]✗[/] {failure.name or failure.record_id}: {failure.error}")
