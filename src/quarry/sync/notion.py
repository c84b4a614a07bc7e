"""Minimal Notion REST client (databases.query + blocks.children.list).

Only the two endpoints a database import needs. Every failure (transport,
timeout, non-2xx status, non-JSON body) surfaces as NotionAPIError so callers
decide whether it is fatal for the run or for one record.
"""

from __future__ import annotations

from typing import Any

import httpx

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
_TIMEOUT = 30.0  # seconds
_USER_AGENT = "quarry/0.1"


class NotionAPIError(RuntimeError):
    """A Notion request failed."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class NotionClient:
    """Synchronous Notion API client authenticated with an integration token.

    Args:
        api_key: Internal integration token (``secret_...`` / ``ntn_...``).
        base_url: API root; override for proxies or tests.
        api_version: Value of the ``Notion-Version`` header.
        timeout: Connect + read timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = NOTION_API_URL,
        api_version: str = NOTION_VERSION,
        timeout: float = _TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": api_version,
                "User-Agent": _USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    def query_database(
        self,
        database_id: str,
        *,
        page_size: int,
        start_cursor: str | None = None,
    ) -> dict[str, Any]:
        """POST /databases/{id}/query — one page of database rows."""
        body: dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            body["start_cursor"] = start_cursor
        return self._request("POST", f"/databases/{database_id}/query", json=body)

    def list_block_children(
        self,
        block_id: str,
        *,
        start_cursor: str | None = None,
        page_size: int = 100,
    ) -> dict[str, Any]:
        """GET /blocks/{id}/children — one page of child blocks."""
        params: dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            params["start_cursor"] = start_cursor
        return self._request("GET", f"/blocks/{block_id}/children", params=params)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> NotionClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise NotionAPIError(f"Notion request {method} {path} failed: {exc}") from exc

        if response.is_error:
            message, code = _error_details(response)
            raise NotionAPIError(
                f"Notion API returned {response.status_code} for {method} {path}: {message}",
                status_code=response.status_code,
                code=code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise NotionAPIError(f"Notion returned a non-JSON body for {method} {path}") from exc
        if not isinstance(data, dict):
            raise NotionAPIError(f"Notion returned an unexpected payload for {method} {path}")
        return data


def _error_details(response: httpx.Response) -> tuple[str, str | None]:
    """Return (message, code) from a Notion error body, tolerating non-JSON bodies."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase, None
    if isinstance(data, dict):
        return str(data.get("message", response.reason_phrase)), data.get("code")
    return response.reason_phrase, None
