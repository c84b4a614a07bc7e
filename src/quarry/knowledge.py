"""Knowledge-base service — items, notes, lifecycle and external imports.

Owns every mutation of a knowledge base's item set. New items always start
as ``pending``; after each successful merge the service calls the
``on_items_added`` listener so the (external) processing queue can schedule
indexing. Removing or refreshing an indexed item also removes its entries
from the downstream index when one is configured.

External imports are serialized per base: a second import of the same base
waits for the running one, then sees its results in the dedup snapshot.
"""

from __future__ import annotations

import logging
import threading
import urllib.parse
import uuid
from collections.abc import Callable
from functools import partial
from pathlib import Path
from typing import Protocol

from quarry.config import NotionCfg
from quarry.db.models import ITEM_TYPES, PROCESSING_STATUSES, Artifact, KnowledgeBase, KnowledgeItem
from quarry.db.repository import Repository
from quarry.storage import FileStore
from quarry.sync.engine import SourceConfig, SyncEngine, SyncReport
from quarry.sync.errors import ConfigMissing, SourceUnavailable, UnsupportedSource
from quarry.sync.materializer import ArtifactMaterializer
from quarry.sync.notion import NotionClient

logger = logging.getLogger(__name__)

NOTION = "notion"
SUPPORTED_SOURCES = (NOTION,)
_ALLOWED_SCHEMES = {"https", "http"}


class IndexRemover(Protocol):
    """Downstream index (embeddings/search) — only removal is needed here."""

    def remove(self, base_id: str, unique_id: str, unique_ids: list[str]) -> None: ...


ItemsAddedListener = Callable[[str, list[KnowledgeItem]], None]


class BaseNotFound(LookupError):
    """Raised when a knowledge base ID or name does not exist."""


class ItemNotFound(LookupError):
    """Raised when an item ID does not exist."""


def validate_url(url: str) -> str:
    """Return *url* stripped, or raise ValueError for non-http(s) URLs."""
    url = url.strip()
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ValueError(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )
    if not parsed.netloc:
        raise ValueError(f"URL has no hostname: {url}")
    return url


def artifact_for_file(path: Path | str) -> Artifact:
    """Describe an existing local file as an artifact (the file is not copied)."""
    p = Path(path).expanduser().resolve()
    if not p.is_file():
        raise ValueError(f"Not a file: {path}")
    return Artifact(
        id=str(uuid.uuid4()),
        name=p.name,
        path=str(p),
        origin_name=p.name,
        size=p.stat().st_size,
        ext=p.suffix.lower(),
    )


class KnowledgeService:
    """Operations on knowledge bases and their items.

    Args:
        repo: Open repository.
        store: Artifact storage (materialized external content lives here).
        index: Optional downstream index used on remove/refresh.
        on_items_added: Listener called as ``(base_id, items)`` after new or
            re-queued items are persisted.
        notion: Notion API settings for imports.
        client_factory: Overrides how the remote client is built (tests).
    """

    def __init__(
        self,
        repo: Repository,
        store: FileStore,
        *,
        index: IndexRemover | None = None,
        on_items_added: ItemsAddedListener | None = None,
        notion: NotionCfg | None = None,
        client_factory: Callable[[str], object] | None = None,
    ) -> None:
        self._repo = repo
        self._store = store
        self._index = index
        self._on_items_added = on_items_added
        self._notion = notion or NotionCfg()
        self._client_factory = client_factory
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Knowledge bases
    # ------------------------------------------------------------------

    def create_base(self, name: str, notion_database_id: str | None = None) -> KnowledgeBase:
        name = name.strip()
        if not name:
            raise ValueError("Knowledge base name must not be empty.")
        base = KnowledgeBase(
            id=str(uuid.uuid4()), name=name, notion_database_id=notion_database_id or None
        )
        self._repo.add_base(base)
        return base

    def get_base(self, base_id: str) -> KnowledgeBase:
        base = self._repo.get_base(base_id)
        if base is None:
            raise BaseNotFound(base_id)
        return base

    def find_base(self, ref: str) -> KnowledgeBase:
        """Look a base up by ID first, then by name."""
        base = self._repo.get_base(ref) or self._repo.get_base_by_name(ref)
        if base is None:
            raise BaseNotFound(ref)
        return base

    def list_bases(self) -> list[KnowledgeBase]:
        return self._repo.list_bases()

    def rename_base(self, base_id: str, name: str) -> KnowledgeBase:
        if not name.strip():
            raise ValueError("Knowledge base name must not be empty.")
        base = self.get_base(base_id)
        base.name = name.strip()
        self._repo.update_base(base)
        return base

    def set_notion_database(self, base_id: str, database_id: str | None) -> KnowledgeBase:
        base = self.get_base(base_id)
        base.notion_database_id = (database_id or "").strip() or None
        self._repo.update_base(base)
        return base

    def delete_base(self, base_id: str) -> None:
        """Delete a base together with its items, note bodies and artifacts."""
        for item in self._repo.list_items(base_id):
            self.remove_item(item)
        self._repo.delete_base(base_id)

    # ------------------------------------------------------------------
    # Adding items
    # ------------------------------------------------------------------

    def add_files(self, base_id: str, artifacts: list[Artifact]) -> list[KnowledgeItem]:
        """Register artifacts as pending items (``external`` when source-tagged)."""
        self.get_base(base_id)
        items = [
            _pending_item(
                base_id,
                "external" if a.source_tag else "file",
                a,
                item_id=a.id,
                unique_id=a.id,
                unique_ids=[a.id] if a.source_tag else None,
            )
            for a in artifacts
        ]
        if items:
            self._repo.add_items(items)
            self._emit(base_id, items)
        return items

    def add_file(self, base_id: str, path: Path | str) -> KnowledgeItem:
        return self.add_files(base_id, [artifact_for_file(path)])[0]

    def add_url(self, base_id: str, url: str) -> KnowledgeItem:
        return self._add_simple(base_id, "url", validate_url(url))

    def add_sitemap(self, base_id: str, url: str) -> KnowledgeItem:
        return self._add_simple(base_id, "sitemap", validate_url(url))

    def add_directory(self, base_id: str, path: Path | str) -> KnowledgeItem:
        p = Path(path).expanduser().resolve()
        if not p.is_dir():
            raise ValueError(f"Not a directory: {path}")
        return self._add_simple(base_id, "directory", str(p))

    def add_note(self, base_id: str, content: str) -> KnowledgeItem:
        """Store the note body separately; the item itself carries no content."""
        self.get_base(base_id)
        item = _pending_item(base_id, "note", "")
        self._repo.add_note(item.id, content)
        self._repo.add_item(item)
        self._emit(base_id, [item])
        return item

    def _add_simple(self, base_id: str, item_type: str, content: str) -> KnowledgeItem:
        self.get_base(base_id)
        item = _pending_item(base_id, item_type, content)
        self._repo.add_item(item)
        self._emit(base_id, [item])
        return item

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get_note_content(self, note_id: str) -> str | None:
        return self._repo.get_note(note_id)

    def update_note_content(self, note_id: str, content: str) -> KnowledgeItem | None:
        """Replace a note body and re-queue the note item for indexing."""
        if not self._repo.update_note(note_id, content):
            raise ItemNotFound(note_id)
        item = self._repo.get_item(note_id)
        if item is None:
            return None
        return self.refresh_item(item)

    # ------------------------------------------------------------------
    # Item lifecycle
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> KnowledgeItem:
        item = self._repo.get_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    def list_items(self, base_id: str) -> list[KnowledgeItem]:
        return self._repo.list_items(base_id)

    def items_by_type(self, base_id: str, item_type: str) -> list[KnowledgeItem]:
        if item_type not in ITEM_TYPES:
            raise ValueError(f"Unknown item type: {item_type!r}")
        return self._repo.list_items(base_id, item_type)

    def update_item(self, item: KnowledgeItem) -> None:
        self._repo.update_item(item)

    def update_item_status(
        self,
        item_id: str,
        status: str,
        progress: float | None = None,
        error: str | None = None,
    ) -> None:
        if status not in PROCESSING_STATUSES:
            raise ValueError(f"Unknown processing status: {status!r}")
        self.get_item(item_id)
        self._repo.update_item_status(item_id, status, progress=progress, error=error)

    def get_processing_status(self, item_id: str) -> str | None:
        item = self._repo.get_item(item_id)
        return item.processing_status if item else None

    def get_processing_items_by_type(self, base_id: str, item_type: str) -> list[KnowledgeItem]:
        return [i for i in self.items_by_type(base_id, item_type) if i.processing_status is not None]

    def remove_item(self, item: KnowledgeItem) -> None:
        """Delete an item and everything derived from it."""
        self._repo.delete_item(item.id)
        if self._index is not None and item.is_indexed:
            self._index.remove(item.base_id, item.unique_id, item.unique_ids)
        artifact = item.artifact
        if item.type == "external" and artifact is not None and self._store.owns(artifact.path):
            self._store.delete(artifact.path)
        if item.type == "note":
            self._repo.delete_note(item.id)

    def refresh_item(self, item: KnowledgeItem) -> KnowledgeItem:
        """Re-queue *item* for indexing unless it is already queued or running."""
        current = self._repo.get_item(item.id) or item
        if current.processing_status in ("pending", "processing"):
            return current
        if self._index is not None and current.is_indexed:
            self._index.remove(current.base_id, current.unique_id, current.unique_ids)
        current.processing_status = "pending"
        current.processing_progress = 0.0
        current.processing_error = ""
        current.unique_id = None
        self._repo.update_item(current)
        self._emit(current.base_id, [current])
        return current

    def clear_completed(self, base_id: str) -> int:
        return self._repo.clear_processing(base_id, only_status="done")

    def clear_all(self, base_id: str) -> int:
        return self._repo.clear_processing(base_id)

    # ------------------------------------------------------------------
    # External sources
    # ------------------------------------------------------------------

    def import_from_external_source(
        self,
        base_id: str,
        source_type: str,
        *,
        api_key: str | None,
        database_id: str | None = None,
    ) -> tuple[list[KnowledgeItem], SyncReport]:
        """Import new pages of the base's Notion database as pending items.

        Args:
            base_id: Target knowledge base.
            source_type: Only ``"notion"`` is supported.
            api_key: Notion integration token.
            database_id: Overrides the database stored on the base.

        Returns:
            (new items, sync report).

        Raises:
            UnsupportedSource: For any other source type.
            ConfigMissing: If the token or database ID is blank.
            SourceUnavailable: If the database cannot be queried. Items
                imported from earlier pages are merged before it propagates.
        """
        if source_type not in SUPPORTED_SOURCES:
            raise UnsupportedSource(f"Unsupported external source: {source_type!r}")
        base = self.get_base(base_id)
        config = SourceConfig(
            api_key=api_key or "",
            database_id=database_id or base.notion_database_id or "",
        )
        missing = config.missing_fields()
        if missing:
            raise ConfigMissing(missing)

        with self._lock_for(base_id):
            existing = self._repo.list_items(base_id, "external")
            materializer = ArtifactMaterializer(
                self._store, source_tag=source_type, namespace=f"{source_type}/{base_id}"
            )
            engine = SyncEngine(materializer, client_factory=self._make_client_factory())
            try:
                report = engine.sync(config, existing)
            except SourceUnavailable as exc:
                if exc.partial is not None:
                    kept = self.add_files(base_id, exc.partial.artifacts)
                    logger.warning("Import of %s stopped early; kept %d new items", base.name, len(kept))
                raise
            items = self.add_files(base_id, report.artifacts)

        logger.info("Imported %d new %s items into %s", len(items), source_type, base.name)
        return items, report

    def _make_client_factory(self) -> Callable[[str], object]:
        if self._client_factory is not None:
            return self._client_factory
        return partial(
            NotionClient,
            base_url=self._notion.base_url,
            api_version=self._notion.api_version,
            timeout=self._notion.timeout,
        )

    def _lock_for(self, base_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(base_id, threading.Lock())

    def _emit(self, base_id: str, items: list[KnowledgeItem]) -> None:
        if self._on_items_added is not None and items:
            self._on_items_added(base_id, items)


def _pending_item(
    base_id: str,
    item_type: str,
    content: str | Artifact,
    *,
    item_id: str | None = None,
    unique_id: str | None = None,
    unique_ids: list[str] | None = None,
) -> KnowledgeItem:
    return KnowledgeItem(
        id=item_id or str(uuid.uuid4()),
        base_id=base_id,
        type=item_type,
        content=content,
        processing_status="pending",
        processing_progress=0.0,
        processing_error="",
        retry_count=0,
        unique_id=unique_id,
        unique_ids=unique_ids,
    )
