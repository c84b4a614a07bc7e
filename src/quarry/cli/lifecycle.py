"""quarry refresh / quarry clear — processing-state maintenance.

  quarry refresh --item <id>     re-queue an item for indexing
  quarry clear --base <kb>       forget the status of finished ('done') items
  quarry clear --base <kb> --all forget the status of every item
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.common import DEFAULT_DB, open_service, resolve_base
from quarry.cli.errors import err_item_not_found
from quarry.knowledge import ItemNotFound

console = Console()

_DbOption = Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")]


def refresh_cmd(
    item: Annotated[str, typer.Option("--item", "-i", help="Item ID to re-process.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Re-queue an item for indexing (no-op while it is pending or processing)."""
    with open_service(db) as service:
        try:
            existing = service.get_item(item)
        except ItemNotFound:
            console.print(err_item_not_found(item))
            raise typer.Exit(1)

        if existing.processing_status in ("pending", "processing"):
            console.print(f"[dim]↷ Already {existing.processing_status} — nothing to do[/]")
            raise typer.Exit(0)

        service.refresh_item(existing)
    console.print(f"[green]✓[/] Re-queued: {existing.id}")


def clear_cmd(
    base: Annotated[str, typer.Option("--base", "-b", help="Knowledge base ID or name.")],
    all_items: Annotated[
        bool,
        typer.Option("--all", help="Clear every item's status, not only finished ones."),
    ] = False,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Clear processing status of finished (or all) items."""
    with open_service(db) as service:
        kb = resolve_base(service, base)
        count = service.clear_all(kb.id) if all_items else service.clear_completed(kb.id)
    scope = "all" if all_items else "completed"
    console.print(f"[green]✓[/] Cleared {count} {scope} item status(es) in {kb.name}")
