"""quarry init — project scaffold.

Creates:
  .quarry.db               — empty database with schema
  quarry.yaml              — project config (project: + storage: sections)
  .quarry/artifacts/       — where imported external content is written
  ~/.quarry/config.yaml    — global defaults (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.common import open_db
from quarry.config import ensure_global_config, load_config, write_project_config

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Project name (defaults to the directory name)."),
    ] = None,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Initialize a new Quarry project."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    db_path = project_dir / ".quarry.db"

    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {db_path} already exists — existing data is preserved.")

    project_name = name or project_dir.name

    conn = open_db(db_path)
    conn.close()
    console.print("  [green]✓[/] .quarry.db")

    write_project_config(project_dir, project_name)
    console.print("  [green]✓[/] quarry.yaml")

    cfg = load_config(project_dir, global_config_path=global_config)
    cfg.storage_root().mkdir(parents=True, exist_ok=True)
    console.print(f"  [green]✓[/] {cfg.storage.root}/")

    ensure_global_config(global_config)

    console.print(
        f"\n[bold]Project '{project_name}' ready.[/]\n"
        "  Next:  quarry base create <name>"
    )
