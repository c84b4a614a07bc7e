"""Tests for KnowledgeService: items, notes, lifecycle and Notion imports."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from notion_fakes import FakeNotion, page
from quarry.config import NotionCfg
from quarry.db.models import Artifact
from quarry.db.repository import Repository
from quarry.knowledge import (
    BaseNotFound,
    ItemNotFound,
    KnowledgeService,
    artifact_for_file,
    validate_url,
)
from quarry.storage import FileStore
from quarry.sync.errors import ConfigMissing, SourceUnavailable, UnsupportedSource


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    return FileStore(tmp_path / "artifacts")


@pytest.fixture
def added() -> list:
    return []


@pytest.fixture
def index() -> MagicMock:
    return MagicMock()


@pytest.fixture
def service(tmp_db, store, added, index) -> KnowledgeService:
    return KnowledgeService(
        Repository(tmp_db),
        store,
        index=index,
        on_items_added=lambda base_id, items: added.append((base_id, [i.id for i in items])),
    )


@pytest.fixture
def kb(service):
    return service.create_base("Docs", notion_database_id="db-1")


def _with_client(service: KnowledgeService, client: FakeNotion) -> list[str]:
    keys: list[str] = []

    def factory(api_key):
        keys.append(api_key)
        return client

    service._client_factory = factory
    return keys


# ---------------------------------------------------------------------------
# Knowledge bases
# ---------------------------------------------------------------------------


def test_create_and_find_base(service, kb):
    assert service.find_base(kb.id).name == "Docs"
    assert service.find_base("Docs").id == kb.id
    with pytest.raises(BaseNotFound):
        service.find_base("Missing")


def test_create_base_rejects_blank_name(service):
    with pytest.raises(ValueError):
        service.create_base("   ")


def test_rename_and_set_notion_database(service, kb):
    service.rename_base(kb.id, "Manuals")
    service.set_notion_database(kb.id, " db-2 ")
    base = service.get_base(kb.id)
    assert base.name == "Manuals"
    assert base.notion_database_id == "db-2"

    service.set_notion_database(kb.id, "")
    assert service.get_base(kb.id).notion_database_id is None


def test_delete_base_removes_items_and_notes(service, kb, tmp_db):
    note = service.add_note(kb.id, "hello")
    service.add_url(kb.id, "https://example.com")

    service.delete_base(kb.id)

    assert service.list_bases() == []
    assert service.get_note_content(note.id) is None
    assert tmp_db.execute("SELECT COUNT(*) FROM items").fetchone()[0] == 0


# ---------------------------------------------------------------------------
# Adding items
# ---------------------------------------------------------------------------


def test_add_url_is_pending_and_emitted(service, kb, added):
    item = service.add_url(kb.id, "  https://example.com/docs  ")
    assert item.type == "url"
    assert item.content == "https://example.com/docs"
    assert item.processing_status == "pending"
    assert added == [(kb.id, [item.id])]


@pytest.mark.parametrize("bad", ["ftp://example.com", "example.com", "https://"])
def test_add_url_rejects_invalid(service, kb, bad):
    with pytest.raises(ValueError):
        service.add_url(kb.id, bad)


def test_add_sitemap(service, kb):
    assert service.add_sitemap(kb.id, "https://example.com/sitemap.xml").type == "sitemap"


def test_add_directory(service, kb, tmp_path):
    item = service.add_directory(kb.id, tmp_path)
    assert item.type == "directory"
    assert item.content == str(tmp_path.resolve())
    with pytest.raises(ValueError):
        service.add_directory(kb.id, tmp_path / "missing")


def test_add_file_registers_artifact(service, kb, tmp_path):
    f = tmp_path / "Manual.PDF"
    f.write_bytes(b"%PDF-1.4")

    item = service.add_file(kb.id, f)

    assert item.type == "file"
    assert item.artifact.origin_name == "Manual.PDF"
    assert item.artifact.ext == ".pdf"
    assert item.artifact.size == 8
    assert item.artifact.source_tag is None
    assert item.unique_ids is None


def test_add_file_missing(service, kb, tmp_path):
    with pytest.raises(ValueError, match="Not a file"):
        service.add_file(kb.id, tmp_path / "nope.txt")


def test_add_files_with_source_tag_are_external(service, kb):
    artifact = Artifact(id="a-1", name="X", path="/x.md", origin_name="X", size=1, ext=".md", source_tag="notion")
    [item] = service.add_files(kb.id, [artifact])
    assert item.id == "a-1"
    assert item.type == "external"
    assert item.unique_id == "a-1"
    assert item.unique_ids == ["a-1"]


def test_add_files_empty_does_not_emit(service, kb, added):
    assert service.add_files(kb.id, []) == []
    assert added == []


def test_add_to_unknown_base(service):
    with pytest.raises(BaseNotFound):
        service.add_url("nope", "https://example.com")


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


def test_note_body_is_stored_separately(service, kb):
    item = service.add_note(kb.id, "remember the milk")
    assert service.get_item(item.id).content == ""
    assert service.get_note_content(item.id) == "remember the milk"


def test_update_note_content_requeues(service, kb, added):
    item = service.add_note(kb.id, "v1")
    service.update_item_status(item.id, "done", progress=100.0)

    updated = service.update_note_content(item.id, "v2")

    assert service.get_note_content(item.id) == "v2"
    assert updated.processing_status == "pending"
    assert len(added) == 2


def test_update_missing_note(service):
    with pytest.raises(ItemNotFound):
        service.update_note_content("nope", "x")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def test_update_item_status_validates(service, kb):
    item = service.add_url(kb.id, "https://example.com")
    service.update_item_status(item.id, "processing", progress=50.0)
    assert service.get_processing_status(item.id) == "processing"
    with pytest.raises(ValueError):
        service.update_item_status(item.id, "exploded")
    with pytest.raises(ItemNotFound):
        service.update_item_status("nope", "done")


def test_items_by_type(service, kb):
    service.add_url(kb.id, "https://a.example")
    service.add_note(kb.id, "n")
    assert [i.type for i in service.items_by_type(kb.id, "note")] == ["note"]
    with pytest.raises(ValueError):
        service.items_by_type(kb.id, "video")


def test_get_processing_items_by_type(service, kb):
    a = service.add_url(kb.id, "https://a.example")
    service.add_url(kb.id, "https://b.example")
    service.clear_all(kb.id)
    service.update_item_status(a.id, "processing")
    assert [i.id for i in service.get_processing_items_by_type(kb.id, "url")] == [a.id]


def test_refresh_resets_and_removes_from_index(service, kb, index, added):
    artifact = Artifact(id="a-1", name="X", path="/x.md", origin_name="X", size=1, ext=".md", source_tag="notion")
    [item] = service.add_files(kb.id, [artifact])
    service.update_item_status(item.id, "done", progress=100.0)

    refreshed = service.refresh_item(item)

    index.remove.assert_called_once_with(kb.id, "a-1", ["a-1"])
    assert refreshed.processing_status == "pending"
    assert refreshed.processing_progress == 0.0
    assert refreshed.unique_id is None
    assert len(added) == 2


def test_refresh_skips_queued_items(service, kb, index, added):
    item = service.add_url(kb.id, "https://example.com")
    service.refresh_item(item)
    index.remove.assert_not_called()
    assert len(added) == 1


def test_clear_completed_and_all(service, kb):
    a = service.add_url(kb.id, "https://a.example")
    b = service.add_url(kb.id, "https://b.example")
    service.update_item_status(a.id, "done")

    assert service.clear_completed(kb.id) == 1
    assert service.get_processing_status(a.id) is None
    assert service.get_processing_status(b.id) == "pending"
    assert service.clear_all(kb.id) == 1


def test_remove_external_item_deletes_artifact(service, kb, store, index):
    path = store.write("notion/x/Roadmap.md", "body")
    artifact = Artifact(id="a-1", name="Roadmap", path=path, origin_name="Roadmap", size=4, ext=".md", source_tag="notion")
    [item] = service.add_files(kb.id, [artifact])

    service.remove_item(item)

    assert not Path(path).exists()
    index.remove.assert_called_once_with(kb.id, "a-1", ["a-1"])
    with pytest.raises(ItemNotFound):
        service.get_item(item.id)


def test_remove_user_file_keeps_file(service, kb, tmp_path, index):
    f = tmp_path / "notes.txt"
    f.write_text("mine", encoding="utf-8")
    item = service.add_file(kb.id, f)

    service.remove_item(item)

    assert f.exists()
    index.remove.assert_not_called()


def test_remove_note_deletes_body(service, kb):
    item = service.add_note(kb.id, "bye")
    service.remove_item(item)
    assert service.get_note_content(item.id) is None


# ---------------------------------------------------------------------------
# Notion import
# ---------------------------------------------------------------------------


def test_import_adds_pending_external_items(service, kb, added):
    keys = _with_client(service, FakeNotion([page("p1", "Alpha"), page("p2", "Beta")]))

    items, report = service.import_from_external_source(kb.id, "notion", api_key="secret_abc")

    assert keys == ["secret_abc"]
    assert [i.artifact.name for i in items] == ["Alpha", "Beta"]
    assert all(i.type == "external" and i.processing_status == "pending" for i in items)
    assert report.records_seen == 2
    assert added == [(kb.id, [i.id for i in items])]
    assert Path(items[0].artifact.path).parent.name == kb.id


def test_import_is_idempotent(service, kb):
    client = FakeNotion([page("p1", "Alpha"), page("p2", "Beta")])
    _with_client(service, client)
    service.import_from_external_source(kb.id, "notion", api_key="k")

    items, report = service.import_from_external_source(kb.id, "notion", api_key="k")

    assert items == []
    assert report.count("duplicate") == 2
    assert len(service.items_by_type(kb.id, "external")) == 2


def test_import_after_remove_reimports(service, kb):
    _with_client(service, FakeNotion([page("p1", "Alpha")]))
    [item], _ = service.import_from_external_source(kb.id, "notion", api_key="k")

    service.remove_item(item)
    items, _ = service.import_from_external_source(kb.id, "notion", api_key="k")

    assert [i.artifact.name for i in items] == ["Alpha"]


def test_import_database_id_override(service, kb):
    client = FakeNotion([page("p1", "Alpha")])
    _with_client(service, client)
    service.import_from_external_source(kb.id, "notion", api_key="k", database_id="db-9")
    assert client.query_calls[0]["database_id"] == "db-9"


def test_import_missing_config_makes_no_calls(service):
    kb = service.create_base("NoDb")
    keys = _with_client(service, FakeNotion([page("p1", "Alpha")]))

    with pytest.raises(ConfigMissing) as exc_info:
        service.import_from_external_source(kb.id, "notion", api_key="")

    assert exc_info.value.missing == ["api_key", "database_id"]
    assert keys == []


def test_import_unsupported_source(service, kb):
    with pytest.raises(UnsupportedSource):
        service.import_from_external_source(kb.id, "confluence", api_key="k")


def test_import_source_unavailable_adds_nothing(service, kb, added):
    _with_client(service, FakeNotion([page("p1", "Alpha")], fail_query_on=1))

    with pytest.raises(SourceUnavailable):
        service.import_from_external_source(kb.id, "notion", api_key="k")

    assert service.list_items(kb.id) == []
    assert added == []


def test_import_failure_mid_run_keeps_earlier_pages(service, kb):
    pages = [page(f"p{i}", f"Page {i}") for i in range(15)]
    _with_client(service, FakeNotion(pages, fail_query_on=2))

    with pytest.raises(SourceUnavailable):
        service.import_from_external_source(kb.id, "notion", api_key="k")

    assert len(service.items_by_type(kb.id, "external")) == 10

    _with_client(service, FakeNotion(pages))
    items, report = service.import_from_external_source(kb.id, "notion", api_key="k")

    assert [i.artifact.name for i in items] == [f"Page {i}" for i in range(10, 15)]
    assert report.failures == []


class _BlockingNotion(FakeNotion):
    """Holds the first database query until ``release`` is set."""

    def __init__(self, pages):
        super().__init__(pages)
        self.started = threading.Event()
        self.release = threading.Event()

    def query_database(self, database_id, *, page_size, start_cursor=None):
        if not self.started.is_set():
            self.started.set()
            self.release.wait(5)
        return super().query_database(database_id, page_size=page_size, start_cursor=start_cursor)


class _TrackingLock:
    """A lock that flags when a second caller has to wait for it."""

    def __init__(self):
        self._lock = threading.Lock()
        self.waiting = threading.Event()

    def __enter__(self):
        if not self._lock.acquire(blocking=False):
            self.waiting.set()
            self._lock.acquire()
        return self

    def __exit__(self, *exc_info):
        self._lock.release()


def test_lock_is_per_base(service, kb):
    lock = service._lock_for(kb.id)
    assert service._lock_for(kb.id) is lock
    assert service._lock_for("other") is not lock


def test_concurrent_imports_of_one_base_write_each_page_once(service, kb, store):
    pages = [page(f"p{i}", f"Page {i}") for i in range(3)]
    client = _BlockingNotion(pages)
    _with_client(service, client)
    lock = _TrackingLock()
    service._locks[kb.id] = lock

    results: list = []
    errors: list = []

    def run():
        try:
            results.append(service.import_from_external_source(kb.id, "notion", api_key="k"))
        except Exception as exc:
            errors.append(exc)

    first = threading.Thread(target=run)
    second = threading.Thread(target=run)
    first.start()
    assert client.started.wait(5)
    second.start()
    assert lock.waiting.wait(5)
    client.release.set()
    first.join(5)
    second.join(5)

    assert errors == []
    assert len(results) == 2
    (first_items, _), (second_items, second_report) = sorted(results, key=lambda r: -len(r[0]))
    assert [i.artifact.name for i in first_items] == ["Page 0", "Page 1", "Page 2"]
    assert second_items == []
    assert second_report.count("duplicate") == 3
    assert second_report.failures == []
    assert sorted(client.block_calls) == ["p0", "p1", "p2"]
    assert len(service.items_by_type(kb.id, "external")) == 3
    assert len([p for p in store.root.rglob("*.md")]) == 3


def test_default_client_factory_uses_notion_config(tmp_db, store):
    svc = KnowledgeService(
        Repository(tmp_db), store, notion=NotionCfg(base_url="https://proxy.example/v1", timeout=3.0)
    )
    factory = svc._make_client_factory()
    assert factory.keywords == {
        "base_url": "https://proxy.example/v1",
        "api_version": "2022-06-28",
        "timeout": 3.0,
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_validate_url_strips():
    assert validate_url(" http://example.com ") == "http://example.com"


def test_artifact_for_file(tmp_path):
    f = tmp_path / "a.md"
    f.write_text("abc", encoding="utf-8")
    artifact = artifact_for_file(f)
    assert artifact.name == "a.md"
    assert artifact.size == 3
    assert artifact.path == str(f.resolve())
