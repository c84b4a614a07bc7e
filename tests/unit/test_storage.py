"""Tests for the write-once artifact FileStore."""

from __future__ import annotations

from pathlib import Path

import pytest

from quarry.storage import FileStore


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    return FileStore(tmp_path / "artifacts")


def test_write_creates_parents_and_returns_absolute_path(store):
    path = store.write("notion/kb-1/Roadmap.md", "hello")
    assert Path(path).is_absolute()
    assert Path(path).read_text(encoding="utf-8") == "hello"
    assert store.exists("notion/kb-1/Roadmap.md")


def test_write_never_overwrites(store):
    store.write("a.md", "first")
    with pytest.raises(FileExistsError):
        store.write("a.md", "second")
    assert store.read("a.md") == "first"


@pytest.mark.parametrize("name", ["../escape.md", "a/../../escape.md", "/etc/passwd"])
def test_paths_outside_root_rejected(store, name):
    with pytest.raises(ValueError, match="outside of storage root"):
        store.write(name, "x")


def test_owns(store, tmp_path):
    path = store.write("a.md", "x")
    assert store.owns(path)
    assert not store.owns(tmp_path / "user-file.txt")


def test_delete(store):
    path = store.write("a.md", "x")
    assert store.delete(path) is True
    assert not store.exists("a.md")
    assert store.delete(path) is False


def test_delete_outside_root_rejected(store, tmp_path):
    outside = tmp_path / "keep.txt"
    outside.write_text("keep", encoding="utf-8")
    with pytest.raises(ValueError):
        store.delete(outside)
    assert outside.exists()
