"""Domain models for the Quarry database layer."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

ITEM_TYPES = ("file", "url", "note", "sitemap", "directory", "external")
PROCESSING_STATUSES = ("pending", "processing", "done", "failed")


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (the format stored in every table)."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class Artifact:
    """A durable local file registered in a knowledge base.

    Produced once per unique name by the materializer for external sources
    (``source_tag`` set), or built from a user-supplied local file.
    """

    id: str
    name: str
    path: str
    origin_name: str
    size: int
    ext: str
    source_tag: str | None = None
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Artifact:
        return cls(
            id=data["id"],
            name=data["name"],
            path=data["path"],
            origin_name=data.get("origin_name", data["name"]),
            size=int(data.get("size", 0)),
            ext=data.get("ext", ""),
            source_tag=data.get("source_tag"),
            created_at=data.get("created_at") or utc_now(),
        )


@dataclass
class KnowledgeBase:
    id: str
    name: str
    notion_database_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class KnowledgeItem:
    id: str
    base_id: str
    type: str
    content: str | Artifact = ""
    processing_status: str | None = None
    processing_progress: float = 0.0
    processing_error: str = ""
    retry_count: int = 0
    unique_id: str | None = None
    unique_ids: list[str] | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def artifact(self) -> Artifact | None:
        """The file content of ``file``/``external`` items, else None."""
        return self.content if isinstance(self.content, Artifact) else None

    @property
    def is_indexed(self) -> bool:
        return bool(self.unique_id and self.unique_ids)

    def content_json(self) -> str:
        if isinstance(self.content, Artifact):
            return json.dumps(self.content.to_dict())
        return json.dumps(self.content)

    @staticmethod
    def content_from_json(raw: str) -> str | Artifact:
        value = json.loads(raw)
        if isinstance(value, dict):
            return Artifact.from_dict(value)
        return value if isinstance(value, str) else str(value)
