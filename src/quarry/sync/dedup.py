"""Name-based dedup index over a knowledge base's existing items.

Keyed by the ``origin_name`` of each item's artifact content. Remote IDs are
not used: a rename on the remote side must not defeat dedup. The key is the
full sanitized name even when the on-disk filename had to be shortened.
Rebuilt from scratch each run.
"""

from __future__ import annotations

from collections.abc import Iterable

from quarry.db.models import KnowledgeItem


class DedupIndex:
    """O(1) lookup of existing items by origin name."""

    def __init__(self, by_name: dict[str, KnowledgeItem]) -> None:
        self._by_name = by_name

    @classmethod
    def build(cls, existing_items: Iterable[KnowledgeItem]) -> DedupIndex:
        """Index *existing_items*; items without artifact content are ignored.

        When two items share an origin name the first one wins.
        """
        by_name: dict[str, KnowledgeItem] = {}
        for item in existing_items:
            artifact = item.artifact
            if artifact is None or not artifact.origin_name:
                continue
            by_name.setdefault(artifact.origin_name, item)
        return cls(by_name)

    def contains(self, name: str) -> bool:
        return name in self._by_name

    def resolve(self, name: str) -> KnowledgeItem | None:
        return self._by_name.get(name)

    def names(self) -> set[str]:
        """A fresh, mutable copy of the indexed names."""
        return set(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
