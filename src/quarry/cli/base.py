"""quarry base CLI commands.

Commands:
  quarry base create <name> [--notion-database ID]
  quarry base list
  quarry base rename <base> <new-name>
  quarry base set-notion <base> <database-id>
  quarry base delete <base> [--yes]
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from quarry.cli.common import DEFAULT_DB, open_service, resolve_base

console = Console()

base_app = typer.Typer(
    name="base",
    help="Manage knowledge bases (create, list, rename, delete).",
    add_completion=False,
)

_DbOption = Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")]


@base_app.command("create")
def base_create_cmd(
    name: Annotated[str, typer.Argument(help="Knowledge base name.")],
    notion_database: Annotated[
        str | None,
        typer.Option("--notion-database", help="Notion database ID to import from."),
    ] = None,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Create a knowledge base."""
    with open_service(db, create=True) as service:
        try:
            base = service.create_base(name, notion_database_id=notion_database)
        except ValueError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1)
    console.print(f"[green]✓[/] Created knowledge base [bold]{base.name}[/] ({base.id})")


@base_app.command("list")
def base_list_cmd(db: _DbOption = DEFAULT_DB) -> None:
    """List knowledge bases."""
    with open_service(db) as service:
        bases = service.list_bases()
        if not bases:
            console.print("[yellow]No knowledge bases yet.[/]\n  Run:  quarry base create <name>")
            raise typer.Exit(0)

        table = Table(title="Knowledge Bases", show_header=True, header_style="bold")
        table.add_column("Name", style="bold")
        table.add_column("ID")
        table.add_column("Items", justify="right")
        table.add_column("Notion database")
        for base in bases:
            table.add_row(
                base.name,
                base.id,
                str(len(service.list_items(base.id))),
                base.notion_database_id or "[dim]—[/]",
            )
    console.print(table)


@base_app.command("rename")
def base_rename_cmd(
    base: Annotated[str, typer.Argument(help="Knowledge base ID or name.")],
    new_name: Annotated[str, typer.Argument(help="New name.")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Rename a knowledge base."""
    with open_service(db) as service:
        kb = resolve_base(service, base)
        try:
            service.rename_base(kb.id, new_name)
        except ValueError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1)
    console.print(f"[green]✓[/] Renamed: {kb.id} → [bold]{new_name.strip()}[/]")


@base_app.command("set-notion")
def base_set_notion_cmd(
    base: Annotated[str, typer.Argument(help="Knowledge base ID or name.")],
    database_id: Annotated[str, typer.Argument(help="Notion database ID ('' to unset).")],
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Set the Notion database a knowledge base imports from."""
    with open_service(db) as service:
        kb = resolve_base(service, base)
        kb = service.set_notion_database(kb.id, database_id)
    console.print(
        f"[green]✓[/] {kb.name}: Notion database "
        + (f"set to {kb.notion_database_id}" if kb.notion_database_id else "unset")
    )


@base_app.command("delete")
def base_delete_cmd(
    base: Annotated[str, typer.Argument(help="Knowledge base ID or name.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Delete a knowledge base, its items and imported files."""
    with open_service(db) as service:
        kb = resolve_base(service, base)
        count = len(service.list_items(kb.id))
        console.print(f"\nDelete knowledge base: [bold]{kb.name}[/]  ({count} items)")
        if not yes and not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        service.delete_base(kb.id)
    console.print(f"[green]✓[/] Deleted: {kb.name}")
