"""Sync engine — import a Notion database into a knowledge base exactly once.

Pipeline per run (strictly sequential, in remote order):

  page query → per record: title → sanitized name → seen? → fetch blocks →
  render → blank? → materialize → collect

Every record is a fault-containment cell: whatever goes wrong inside it is
recorded as a ``failed`` outcome and the run moves on. Only a missing
configuration (before any request) or a failed page query stops the run.

The seen-set starts as the names of the items the caller already holds, so
one set rejects both "imported in an earlier run" and "duplicate title within
this run". Re-running with no remote changes therefore produces nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from quarry.db.models import Artifact, KnowledgeItem
from quarry.sync.dedup import DedupIndex
from quarry.sync.errors import ConfigMissing, SourceUnavailable
from quarry.sync.fetcher import PAGE_SIZE, PageFetcher, RemoteClient, RemoteRecord, fetch_blocks
from quarry.sync.materializer import ArtifactMaterializer
from quarry.sync.names import UNTITLED, sanitize_name
from quarry.sync.notion import NotionClient
from quarry.sync.render import extract_title, render_blocks

logger = logging.getLogger(__name__)

IMPORTED = "imported"
DUPLICATE = "duplicate"
EMPTY = "empty"
FAILED = "failed"


@dataclass(frozen=True)
class SourceConfig:
    """Credentials and target of one external source."""

    api_key: str
    database_id: str

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if not (self.api_key or "").strip():
            missing.append("api_key")
        if not (self.database_id or "").strip():
            missing.append("database_id")
        return missing


@dataclass(frozen=True)
class RecordOutcome:
    """What happened to one remote record."""

    record_id: str
    name: str | None
    status: str
    artifact: Artifact | None = None
    error: str | None = None


@dataclass
class SyncReport:
    """Ordered per-record outcomes of one run."""

    outcomes: list[RecordOutcome] = field(default_factory=list)
    pages: int = 0

    @property
    def artifacts(self) -> list[Artifact]:
        return [o.artifact for o in self.outcomes if o.artifact is not None]

    @property
    def failures(self) -> list[RecordOutcome]:
        return [o for o in self.outcomes if o.status == FAILED]

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def records_seen(self) -> int:
        return len(self.outcomes)


class SyncEngine:
    """Walks a remote database and materializes records not yet known locally.

    Args:
        materializer: Writes new content; determines namespace and source tag.
        client_factory: Builds a remote client from an API key. Called only
            after the configuration has been validated.
        page_size: Rows per page query.
    """

    def __init__(
        self,
        materializer: ArtifactMaterializer,
        client_factory: Callable[[str], RemoteClient] = NotionClient,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._materializer = materializer
        self._client_factory = client_factory
        self._page_size = page_size

    def sync(self, config: SourceConfig, existing_items: Iterable[KnowledgeItem]) -> SyncReport:
        """Import every new, non-empty record of ``config.database_id``.

        Args:
            config: API key and database ID; both required.
            existing_items: Snapshot of the items the knowledge base already
                holds for this source.

        Returns:
            SyncReport whose ``artifacts`` are the newly materialized files,
            in remote order.

        Raises:
            ConfigMissing: Before any network call, if a field is blank.
            SourceUnavailable: If a page query fails. Nothing is rolled back;
                the exception's ``partial`` report holds what was written.
        """
        missing = config.missing_fields()
        if missing:
            raise ConfigMissing(missing)

        index = DedupIndex.build(existing_items)
        seen = index.names()
        report = SyncReport()

        client = self._client_factory(config.api_key)
        try:
            fetcher = PageFetcher(client, config.database_id, page_size=self._page_size)
            cursor: str | None = None
            while True:
                try:
                    page = fetcher.next_page(cursor)
                except SourceUnavailable as exc:
                    exc.partial = report
                    raise
                report.pages += 1
                for record in page.records:
                    report.outcomes.append(self._process_record(client, record, seen))
                cursor = page.next_cursor
                if not page.has_more:
                    break
        finally:
            close = getattr(client, "close", None)
            if callable(close):
                close()

        logger.info(
            "Sync of %s finished: %d imported, %d duplicate, %d empty, %d failed (%d pages)",
            config.database_id,
            report.count(IMPORTED),
            report.count(DUPLICATE),
            report.count(EMPTY),
            report.count(FAILED),
            report.pages,
        )
        return report

    def _process_record(self, client: RemoteClient, record: RemoteRecord, seen: set[str]) -> RecordOutcome:
        name: str | None = None
        try:
            title = extract_title(record.raw) or UNTITLED
            name = sanitize_name(title)
            if name in seen:
                logger.info("Skip existing file: %s", name)
                return RecordOutcome(record.id, name, DUPLICATE)
            seen.add(name)

            body = render_blocks(fetch_blocks(client, record.id))
            if not body.strip():
                logger.info("Skip empty page: %s", name)
                return RecordOutcome(record.id, name, EMPTY)

            artifact = self._materializer.materialize(name, body)
        except Exception as exc:
            logger.warning("Failed to process page %s (%s): %s", record.id, name, exc, exc_info=True)
            return RecordOutcome(record.id, name, FAILED, error=str(exc))

        logger.info("Imported %s → %s", name, artifact.path)
        return RecordOutcome(record.id, name, IMPORTED, artifact=artifact)
