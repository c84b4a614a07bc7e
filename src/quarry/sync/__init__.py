"""External-source synchronization — Notion database import with name-based dedup."""

from quarry.sync.dedup import DedupIndex
from quarry.sync.engine import RecordOutcome, SourceConfig, SyncEngine, SyncReport
from quarry.sync.errors import (
    ArtifactExists,
    ConfigMissing,
    RecordProcessingError,
    SourceUnavailable,
    SyncError,
    UnsupportedSource,
)
from quarry.sync.fetcher import PAGE_SIZE, Page, PageFetcher, RemoteRecord
from quarry.sync.materializer import ArtifactMaterializer
from quarry.sync.names import sanitize_name
from quarry.sync.notion import NotionAPIError, NotionClient
from quarry.sync.render import extract_title, render_block, render_blocks

__all__ = [
    "ArtifactExists",
    "ArtifactMaterializer",
    "ConfigMissing",
    "DedupIndex",
    "NotionAPIError",
    "NotionClient",
    "PAGE_SIZE",
    "Page",
    "PageFetcher",
    "RecordOutcome",
    "RecordProcessingError",
    "RemoteRecord",
    "SourceConfig",
    "SourceUnavailable",
    "SyncEngine",
    "SyncError",
    "SyncReport",
    "UnsupportedSource",
    "extract_title",
    "render_block",
    "render_blocks",
    "sanitize_name",
]
