"""Shared CLI plumbing: open the project database and build the service."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from quarry.cli.errors import err_base_not_found, err_config, err_no_db
from quarry.config import ConfigError, load_config
from quarry.db.connection import Database
from quarry.db.models import KnowledgeBase, KnowledgeItem
from quarry.db.repository import Repository
from quarry.db.schema import initialize
from quarry.knowledge import BaseNotFound, KnowledgeService
from quarry.storage import FileStore

console = Console()

DEFAULT_DB = Path(".quarry.db")


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the project database and run migrations."""
    db = Database(db_path)
    conn = db.connect()
    initialize(conn)
    return conn


def _announce_queued(base_id: str, items: list[KnowledgeItem]) -> None:
    console.print(f"  [dim]{len(items)} item(s) queued for indexing[/]")


@contextmanager
def open_service(db_path: Path, *, create: bool = False) -> Iterator[KnowledgeService]:
    """Yield a KnowledgeService bound to *db_path*; exits 1 if the DB is missing.

    Configuration is loaded from the directory containing the database.
    """
    if not create and not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    project_dir = db_path.resolve().parent
    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    conn = open_db(db_path)
    try:
        yield KnowledgeService(
            Repository(conn),
            FileStore(cfg.storage_root()),
            on_items_added=_announce_queued,
            notion=cfg.notion,
        )
    finally:
        conn.close()


def resolve_base(service: KnowledgeService, ref: str) -> KnowledgeBase:
    """Find a base by ID or name, or print an error and exit 1."""
    try:
        return service.find_base(ref)
    except BaseNotFound:
        console.print(err_base_not_found(ref))
        raise typer.Exit(1)


def describe_item(item: KnowledgeItem) -> str:
    """Short human label for an item: file name, URL, path or '(note)'."""
    artifact = item.artifact
    if artifact is not None:
        return artifact.origin_name
    if item.type == "note":
        return "(note)"
    return str(item.content)
