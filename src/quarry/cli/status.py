"""quarry status — knowledge bases and item processing state."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from quarry.cli.common import DEFAULT_DB, describe_item, open_service, resolve_base
from quarry.db.models import KnowledgeBase, KnowledgeItem
from quarry.knowledge import KnowledgeService

console = Console()

_STATUS_STYLE = {
    "pending": "[yellow]pending[/]",
    "processing": "[cyan]processing[/]",
    "done": "[green]done[/]",
    "failed": "[red]failed[/]",
    None: "[dim]—[/]",
}


def status_cmd(
    base: Annotated[
        str | None,
        typer.Option("--base", "-b", help="Show the items of one knowledge base."),
    ] = None,
    db: Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")] = DEFAULT_DB,
) -> None:
    """Show knowledge bases, or the items of one base with their status."""
    with open_service(db) as service:
        if base is None:
            _show_overview(service)
        else:
            kb = resolve_base(service, base)
            _show_base(kb, service.list_items(kb.id))


def _show_overview(service: KnowledgeService) -> None:
    bases = service.list_bases()
    if not bases:
        console.print(
            Panel(
                "[yellow]No knowledge bases.[/]\n  Run:  quarry base create <name>",
                title="[bold]Knowledge Bases[/]",
                expand=False,
            )
        )
        return

    lines: list[str] = []
    for kb in bases:
        items = service.list_items(kb.id)
        statuses = Counter(i.processing_status for i in items)
        lines.append(
            f"[bold]{kb.name}[/]  Items: {len(items)}  |  "
            f"pending {statuses['pending']} · processing {statuses['processing']} · "
            f"done {statuses['done']} · failed {statuses['failed']}"
        )
    console.print(Panel("\n".join(lines), title="[bold]Knowledge Bases[/]", expand=False))


def _show_base(kb: KnowledgeBase, items: list[KnowledgeItem]) -> None:
    header = f"Notion database: {kb.notion_database_id or '(none)'}"
    if not items:
        console.print(Panel(f"{header}\n[yellow]No items.[/]", title=f"[bold]{kb.name}[/]", expand=False))
        return

    table = Table(title=kb.name, caption=header, show_header=True, header_style="bold")
    table.add_column("ID", overflow="fold")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    for item in items:
        table.add_row(
            item.id,
            item.type,
            describe_item(item),
            _STATUS_STYLE.get(item.processing_status, item.processing_status or ""),
            f"{item.processing_progress:.0f}%",
        )
    console.print(table)
