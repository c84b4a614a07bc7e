"""quarry remove — item lifecycle management.

Removes an item and everything derived from it:
  - the item record
  - downstream index entries (when the item was indexed)
  - the imported Markdown file (external items)
  - the note body (notes)

Usage:
  quarry remove --item <id>
  quarry remove --item <id> --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.common import DEFAULT_DB, describe_item, open_service
from quarry.cli.errors import err_item_not_found
from quarry.knowledge import ItemNotFound

console = Console()


def remove_cmd(
    item: Annotated[str, typer.Option("--item", "-i", help="Item ID to remove.")],
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove an item and its derived data from its knowledge base."""
    with open_service(db) as service:
        try:
            existing = service.get_item(item)
        except ItemNotFound:
            console.print(err_item_not_found(item))
            raise typer.Exit(0)

        console.print(f"\nRemove {existing.type}: [bold]{describe_item(existing)}[/]")
        console.print(
            f"  Status: {existing.processing_status or '—'}  |  "
            f"Indexed: {'yes' if existing.is_indexed else 'no'}"
        )

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        service.remove_item(existing)

    console.print(f"\n[green]✓[/] Removed: {existing.id}")
