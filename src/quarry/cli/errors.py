"""Quarry rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from quarry.cli.errors import err_no_db
    console.print(err_no_db(".quarry.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str = ".quarry.db") -> str:
    """No .quarry.db found."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  quarry init"
    )


def err_base_not_found(ref: str) -> str:
    """Knowledge base ID/name unknown."""
    return (
        f"[red]Error:[/] Knowledge base '{ref}' not found.\n"
        "  Run:  quarry base list  to see all knowledge bases."
    )


def err_item_not_found(item_id: str) -> str:
    return (
        f"[yellow]Item not found:[/] '{item_id}' is not in the knowledge base.\n"
        "  Run:  quarry status --base <name>  to see all items."
    )


def err_notion_config_missing(missing: list[str], base_name: str) -> str:
    """API key or database ID missing before a Notion import."""
    hints: list[str] = []
    if "api_key" in missing:
        hints.append("  Set:  export NOTION_API_KEY=secret_...   (or pass --api-key)")
    if "database_id" in missing:
        hints.append(
            f"  Run:  quarry base set-notion {base_name} <database-id>   (or pass --database-id)"
        )
    return (
        f"[red]Error:[/] Notion configuration missing: {', '.join(missing)}.\n"
        + "\n".join(hints)
    )


def err_source_unavailable(detail: str) -> str:
    """Paginated query failed — nothing more was imported."""
    return (
        f"[red]Error:[/] Notion database could not be read.\n"
        f"  {detail}\n"
        "  Check the token, share the database with your integration, then re-run:\n"
        "    quarry sync --base <name>\n"
        "  Pages imported before the failure are kept and will not be imported twice."
    )


def err_unsupported_source(source: str) -> str:
    return (
        f"[red]Error:[/] Unsupported external source '{source}'.\n"
        "  Supported sources: notion"
    )


def err_invalid_input(detail: str) -> str:
    return f"[red]Error:[/] {detail}"


def err_config(detail: str) -> str:
    """Config file invalid or forbidden value."""
    return f"[red]Error:[/] Invalid configuration.\n  {detail}"
