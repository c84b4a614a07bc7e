"""Paginated walk over a Notion database, plus full-content retrieval.

``PageFetcher.next_page`` is one network round trip returning one page of
rows; the caller drives the cursor until ``has_more`` is false. Any failure
of the paginated query is fatal for the run (SourceUnavailable), while
``fetch_blocks`` failures concern a single record (RecordProcessingError).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from quarry.sync.errors import RecordProcessingError, SourceUnavailable
from quarry.sync.notion import NotionAPIError

PAGE_SIZE = 10
_MAX_BLOCK_PAGES = 1_000


class RemoteClient(Protocol):
    """What the fetcher needs from a remote API client (see NotionClient)."""

    def query_database(
        self, database_id: str, *, page_size: int, start_cursor: str | None = None
    ) -> dict[str, Any]: ...

    def list_block_children(
        self, block_id: str, *, start_cursor: str | None = None, page_size: int = 100
    ) -> dict[str, Any]: ...


@dataclass(frozen=True)
class RemoteRecord:
    """One database row. Lives only for the duration of a sync run."""

    id: str
    properties: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_page(cls, page: dict[str, Any]) -> RemoteRecord:
        properties = page.get("properties")
        return cls(
            id=str(page.get("id") or ""),
            properties=properties if isinstance(properties, dict) else {},
            raw=page,
        )


@dataclass(frozen=True)
class Page:
    records: list[RemoteRecord]
    has_more: bool
    next_cursor: str | None


class PageFetcher:
    """Cursor-driven reader for one database, scoped to one sync run.

    Args:
        client: Remote API client.
        database_id: Notion database to walk.
        page_size: Rows per request (fixed at 10 for sync runs).
    """

    def __init__(self, client: RemoteClient, database_id: str, page_size: int = PAGE_SIZE) -> None:
        self._client = client
        self._database_id = database_id
        self._page_size = page_size
        self.requests = 0

    def next_page(self, cursor: str | None = None) -> Page:
        """Fetch the page that starts at *cursor* (``None`` for the first page).

        Raises:
            SourceUnavailable: On any transport/auth/HTTP error, a malformed
                response, or ``has_more`` without a ``next_cursor``.
        """
        self.requests += 1
        try:
            response = self._client.query_database(
                self._database_id, page_size=self._page_size, start_cursor=cursor
            )
        except NotionAPIError as exc:
            raise SourceUnavailable(
                f"Could not query database '{self._database_id}': {exc}"
            ) from exc

        results = response.get("results")
        if not isinstance(results, list):
            raise SourceUnavailable(
                f"Malformed query response for database '{self._database_id}' (no results list)."
            )

        has_more = bool(response.get("has_more"))
        next_cursor = response.get("next_cursor") or None
        if has_more and not next_cursor:
            raise SourceUnavailable(
                f"Query for database '{self._database_id}' reported more rows but no cursor."
            )

        records = [RemoteRecord.from_page(p) for p in results if isinstance(p, dict)]
        return Page(records=records, has_more=has_more, next_cursor=next_cursor)


def fetch_blocks(client: RemoteClient, block_id: str) -> list[dict[str, Any]]:
    """Return every child block of *block_id*, following block pagination.

    Raises:
        RecordProcessingError: If any request fails or the response is malformed.
    """
    if not block_id:
        raise RecordProcessingError("Record has no id; cannot fetch its content.")

    blocks: list[dict[str, Any]] = []
    cursor: str | None = None
    for _ in range(_MAX_BLOCK_PAGES):
        try:
            response = client.list_block_children(block_id, start_cursor=cursor)
        except NotionAPIError as exc:
            raise RecordProcessingError(f"Could not fetch content of '{block_id}': {exc}") from exc

        results = response.get("results")
        if not isinstance(results, list):
            raise RecordProcessingError(f"Malformed block list for '{block_id}'.")
        blocks.extend(b for b in results if isinstance(b, dict))

        cursor = response.get("next_cursor") or None
        if not response.get("has_more") or not cursor:
            return blocks

    raise RecordProcessingError(
        f"Content of '{block_id}' exceeds {_MAX_BLOCK_PAGES} block pages."
    )
