"""Error taxonomy for external-source synchronization.

ConfigMissing and SourceUnavailable are fatal for a run and propagate to the
caller. RecordProcessingError subclasses only ever describe a single record;
the engine records them as failed outcomes and continues.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for synchronization errors."""


class ConfigMissing(SyncError):
    """Raised before any network call when credentials or the source ID are absent."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing source configuration: {', '.join(missing)}")


class SourceUnavailable(SyncError):
    """Raised when the paginated query fails (transport, auth, HTTP error).

    ``partial`` is set by the engine to the report of the records processed
    before the failure, so already written artifacts can still be merged.
    """

    partial = None


class UnsupportedSource(SyncError):
    """Raised for an external source type Quarry cannot import from."""


class RecordProcessingError(SyncError):
    """A single remote record could not be turned into an artifact."""


class ArtifactExists(RecordProcessingError):
    """The materializer was asked to write a name that already exists."""
