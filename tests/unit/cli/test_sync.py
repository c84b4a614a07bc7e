"""Tests for quarry sync (Notion import through the CLI)."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from notion_fakes import FakeNotion, page
from quarry.cli.main import app
from quarry.db.connection import Database
from quarry.db.models import KnowledgeBase
from quarry.db.repository import Repository
from quarry.db.schema import initialize

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _no_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NOTION_API_KEY", raising=False)


def _make_db(path: Path, notion_database_id: str | None = "db-1") -> sqlite3.Connection:
    conn = Database(path).connect()
    initialize(conn)
    Repository(conn).add_base(
        KnowledgeBase(id="kb-1", name="Docs", notion_database_id=notion_database_id)
    )
    return conn


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / ".quarry.db"
    _make_db(path).close()
    return path


def _sync(db_path: Path, *extra: str, env: dict | None = None):
    return runner.invoke(app, ["sync", "--base", "Docs", "--db", str(db_path), *extra], env=env)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


def test_sync_imports_pages(db_path: Path, tmp_path: Path) -> None:
    fake = FakeNotion([page("p1", "Alpha"), page("p2", "Beta")])
    with patch("quarry.knowledge.NotionClient", return_value=fake) as client_cls:
        result = _sync(db_path, env={"NOTION_API_KEY": "secret_abc"})

    assert result.exit_code == 0, result.output
    assert "2 imported" in result.output
    assert "Alpha" in result.output
    assert client_cls.call_args.args == ("secret_abc",)
    assert (tmp_path / ".quarry" / "artifacts" / "notion" / "kb-1" / "Alpha.md").exists()

    conn = Database(db_path).connect()
    items = Repository(conn).list_items("kb-1", "external")
    conn.close()
    assert [i.artifact.name for i in items] == ["Alpha", "Beta"]
    assert all(i.processing_status == "pending" for i in items)


def test_sync_twice_imports_nothing_new(db_path: Path) -> None:
    with patch("quarry.knowledge.NotionClient", side_effect=lambda *a, **kw: FakeNotion([page("p1", "Alpha")])):
        _sync(db_path, "--api-key", "k")
        result = _sync(db_path, "--api-key", "k")

    assert result.exit_code == 0, result.output
    assert "0 imported" in result.output
    assert "1 already present" in result.output


def test_sync_reports_failed_pages(db_path: Path) -> None:
    fake = FakeNotion([page("p1", "Alpha"), page("p2", "Beta")], fail_blocks_for={"p1"})
    with patch("quarry.knowledge.NotionClient", return_value=fake):
        result = _sync(db_path, "--api-key", "k")

    assert result.exit_code == 0, result.output
    assert "1 imported" in result.output
    assert "1 failed" in result.output


def test_sync_database_id_option(tmp_path: Path) -> None:
    db_path = tmp_path / ".quarry.db"
    _make_db(db_path, notion_database_id=None).close()
    fake = FakeNotion([page("p1", "Alpha")])
    with patch("quarry.knowledge.NotionClient", return_value=fake):
        result = _sync(db_path, "--api-key", "k", "--database-id", "db-override")

    assert result.exit_code == 0, result.output
    assert fake.query_calls[0]["database_id"] == "db-override"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


def test_sync_missing_token_exits_1_without_calls(db_path: Path) -> None:
    with patch("quarry.knowledge.NotionClient") as client_cls:
        result = _sync(db_path)

    assert result.exit_code == 1
    assert "NOTION_API_KEY" in result.output
    client_cls.assert_not_called()


def test_sync_missing_database_exits_1(tmp_path: Path) -> None:
    db_path = tmp_path / ".quarry.db"
    _make_db(db_path, notion_database_id=None).close()
    with patch("quarry.knowledge.NotionClient") as client_cls:
        result = _sync(db_path, "--api-key", "k")

    assert result.exit_code == 1
    assert "set-notion" in result.output
    client_cls.assert_not_called()


def test_sync_source_unavailable_exits_1(db_path: Path) -> None:
    fake = FakeNotion([page("p1", "Alpha")], fail_query_on=1)
    with patch("quarry.knowledge.NotionClient", return_value=fake):
        result = _sync(db_path, "--api-key", "k")

    assert result.exit_code == 1
    assert "could not be read" in result.output


def test_sync_unsupported_source_exits_1(db_path: Path) -> None:
    result = _sync(db_path, "--api-key", "k", "--source", "confluence")
    assert result.exit_code == 1
    assert "Unsupported" in result.output


def test_sync_unknown_base_exits_1(db_path: Path) -> None:
    result = runner.invoke(app, ["sync", "--base", "Nope", "--db", str(db_path), "--api-key", "k"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_sync_no_db_exits_1(tmp_path: Path) -> None:
    result = _sync(tmp_path / "missing.db", "--api-key", "k")
    assert result.exit_code == 1
    assert "quarry init" in result.output
