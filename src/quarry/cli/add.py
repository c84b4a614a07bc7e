"""quarry add — register sources with a knowledge base.

Commands:
  quarry add file <path>...      --base <kb>
  quarry add directory <path>    --base <kb>
  quarry add url <url>           --base <kb>
  quarry add sitemap <url>       --base <kb>
  quarry add note <text>         --base <kb>

Every new item starts as 'pending' and is handed to the processing queue.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.common import DEFAULT_DB, open_service, resolve_base
from quarry.cli.errors import err_invalid_input

console = Console()

add_app = typer.Typer(
    name="add",
    help="Add files, directories, URLs, sitemaps or notes to a knowledge base.",
    add_completion=False,
)

_BaseOption = Annotated[str, typer.Option("--base", "-b", help="Knowledge base ID or name.")]
_DbOption = Annotated[Path, typer.Option("--db", help="Path to .quarry.db.")]


@add_app.command("file")
def add_file_cmd(
    paths: Annotated[list[Path], typer.Argument(help="Local file(s) to add.")],
    base: _BaseOption,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Add one or more local files."""
    with open_service(db) as service:
        kb = resolve_base(service, base)
        added = 0
        for path in paths:
            try:
                item = service.add_file(kb.id, path)
            except ValueError as exc:
                console.print(f"  [red]✗[/] {exc}")
                continue
            console.print(f"  [green]✓[/] {item.artifact.name}")
            added += 1
    if added < len(paths):
        raise typer.Exit(1)


@add_app.command("directory")
def add_directory_cmd(
    path: Annotated[Path, typer.Argument(help="Directory to add.")],
    base: _BaseOption,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Add a directory (expanded by the processing queue)."""
    _add_simple(db, base, "directory", str(path))


@add_app.command("url")
def add_url_cmd(
    url: Annotated[str, typer.Argument(help="http(s) URL.")],
    base: _BaseOption,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Add a web page."""
    _add_simple(db, base, "url", url)


@add_app.command("sitemap")
def add_sitemap_cmd(
    url: Annotated[str, typer.Argument(help="http(s) URL of a sitemap.xml.")],
    base: _BaseOption,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Add a sitemap."""
    _add_simple(db, base, "sitemap", url)


@add_app.command("note")
def add_note_cmd(
    text: Annotated[str, typer.Argument(help="Note text.")],
    base: _BaseOption,
    db: _DbOption = DEFAULT_DB,
) -> None:
    """Add a free-text note."""
    if not text.strip():
        console.print(err_invalid_input("Note text must not be empty."))
        raise typer.Exit(1)
    _add_simple(db, base, "note", text)


def _add_simple(db: Path, base: str, item_type: str, value: str) -> None:
    with open_service(db) as service:
        kb = resolve_base(service, base)
        adders = {
            "directory": service.add_directory,
            "url": service.add_url,
            "sitemap": service.add_sitemap,
            "note": service.add_note,
        }
        try:
            item = adders[item_type](kb.id, value)
        except ValueError as exc:
            console.print(err_invalid_input(str(exc)))
            raise typer.Exit(1)
    console.print(f"[green]✓[/] Added {item_type} to [bold]{kb.name}[/] ({item.id})")
