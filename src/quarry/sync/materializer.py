"""Write-once persistence of rendered remote content as local Markdown files."""

from __future__ import annotations

import uuid
from typing import Protocol

from quarry.db.models import Artifact
from quarry.sync.errors import ArtifactExists, RecordProcessingError
from quarry.sync.names import filename_for

MARKDOWN_EXT = ".md"


class ArtifactStore(Protocol):
    """Storage collaborator (see quarry.storage.FileStore)."""

    def write(self, logical_name: str, body: str) -> str: ...

    def exists(self, logical_name: str) -> bool: ...


class ArtifactMaterializer:
    """Persist ``(name, body)`` pairs as artifacts under a fixed namespace.

    Args:
        store: Storage collaborator doing the physical write.
        source_tag: External source the artifacts come from (e.g. ``"notion"``).
        namespace: Directory prefix inside the store, normally
            ``<source_tag>/<base_id>`` so two bases never collide.
    """

    def __init__(self, store: ArtifactStore, source_tag: str, namespace: str = "") -> None:
        self._store = store
        self.source_tag = source_tag
        self.namespace = namespace.strip("/")

    def logical_name(self, name: str) -> str:
        filename = filename_for(name, MARKDOWN_EXT)
        return f"{self.namespace}/{filename}" if self.namespace else filename

    def materialize(self, name: str, body: str) -> Artifact:
        """Write *body* once under *name* and describe the result.

        Raises:
            ArtifactExists: If an artifact with this name is already stored.
                Callers are expected to have deduplicated before calling.
            RecordProcessingError: If the write itself fails.
        """
        target = self.logical_name(name)
        try:
            if self._store.exists(target):
                raise ArtifactExists(f"Artifact '{target}' already exists; refusing to overwrite.")
            path = self._store.write(target, body)
        except FileExistsError as exc:
            raise ArtifactExists(f"Artifact '{target}' already exists; refusing to overwrite.") from exc
        except (OSError, ValueError) as exc:
            raise RecordProcessingError(f"Could not write artifact '{target}': {exc}") from exc

        return Artifact(
            id=str(uuid.uuid4()),
            name=name,
            path=path,
            origin_name=name,
            size=len(body.encode("utf-8")),
            ext=MARKDOWN_EXT,
            source_tag=self.source_tag,
        )
