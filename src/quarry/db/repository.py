"""Repository pattern for all Quarry database operations.

Single interface for: knowledge bases, items (with processing lifecycle) and
note bodies. Item content is stored as JSON: an artifact dict for
``file``/``external`` items, a plain string otherwise.
"""

from __future__ import annotations

import json
import sqlite3

from quarry.db.models import KnowledgeBase, KnowledgeItem, utc_now

_ITEM_COLUMNS = (
    "id, base_id, type, content, processing_status, processing_progress, "
    "processing_error, retry_count, unique_id, unique_ids, created_at, updated_at"
)


class Repository:
    """Data access layer for all Quarry database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see quarry.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Knowledge bases
    # ------------------------------------------------------------------

    def add_base(self, base: KnowledgeBase) -> None:
        """Insert a new knowledge base."""
        now = utc_now()
        base.created_at = base.created_at or now
        base.updated_at = base.updated_at or now
        self._conn.execute(
            """
            INSERT INTO knowledge_bases (id, name, notion_database_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (base.id, base.name, base.notion_database_id, base.created_at, base.updated_at),
        )
        self._conn.commit()

    def get_base(self, base_id: str) -> KnowledgeBase | None:
        """Return a knowledge base by ID, or None if not found."""
        row = self._conn.execute(
            "SELECT * FROM knowledge_bases WHERE id = ?", (base_id,)
        ).fetchone()
        return _row_to_base(row) if row else None

    def get_base_by_name(self, name: str) -> KnowledgeBase | None:
        """Return the oldest knowledge base called *name*, or None."""
        row = self._conn.execute(
            "SELECT * FROM knowledge_bases WHERE name = ? ORDER BY created_at LIMIT 1",
            (name,),
        ).fetchone()
        return _row_to_base(row) if row else None

    def list_bases(self) -> list[KnowledgeBase]:
        """Return all knowledge bases ordered by creation time (oldest first)."""
        rows = self._conn.execute(
            "SELECT * FROM knowledge_bases ORDER BY created_at, name"
        ).fetchall()
        return [_row_to_base(r) for r in rows]

    def update_base(self, base: KnowledgeBase) -> None:
        """Persist name and Notion database ID of *base*."""
        base.updated_at = utc_now()
        self._conn.execute(
            """
            UPDATE knowledge_bases
            SET name = ?, notion_database_id = ?, updated_at = ?
            WHERE id = ?
            """,
            (base.name, base.notion_database_id, base.updated_at, base.id),
        )
        self._conn.commit()

    def delete_base(self, base_id: str) -> None:
        """Delete a knowledge base. Items cascade; note bodies do not."""
        self._conn.execute("DELETE FROM knowledge_bases WHERE id = ?", (base_id,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(self, item: KnowledgeItem) -> None:
        """Insert a new item."""
        now = utc_now()
        item.created_at = item.created_at or now
        item.updated_at = item.updated_at or now
        self._conn.execute(
            f"INSERT INTO items ({_ITEM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            _item_params(item),
        )
        self._conn.commit()

    def add_items(self, items: list[KnowledgeItem]) -> None:
        """Insert several items in one transaction."""
        now = utc_now()
        with self._conn:
            for item in items:
                item.created_at = item.created_at or now
                item.updated_at = item.updated_at or now
                self._conn.execute(
                    f"INSERT INTO items ({_ITEM_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    _item_params(item),
                )

    def get_item(self, item_id: str) -> KnowledgeItem | None:
        """Return an item by ID, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = ?", (item_id,)
        ).fetchone()
        return _row_to_item(row) if row else None

    def list_items(self, base_id: str, item_type: str | None = None) -> list[KnowledgeItem]:
        """Return the items of *base_id* (optionally one type), oldest first."""
        if item_type is None:
            rows = self._conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM items WHERE base_id = ? ORDER BY created_at, rowid",
                (base_id,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM items WHERE base_id = ? AND type = ? "
                "ORDER BY created_at, rowid",
                (base_id, item_type),
            ).fetchall()
        return [_row_to_item(r) for r in rows]

    def count_items(self, base_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM items WHERE base_id = ?", (base_id,)
        ).fetchone()[0]

    def update_item(self, item: KnowledgeItem) -> None:
        """Persist every mutable field of *item* and bump ``updated_at``."""
        item.updated_at = utc_now()
        self._conn.execute(
            """
            UPDATE items
            SET content = ?, processing_status = ?, processing_progress = ?,
                processing_error = ?, retry_count = ?, unique_id = ?, unique_ids = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                item.content_json(),
                item.processing_status,
                item.processing_progress,
                item.processing_error,
                item.retry_count,
                item.unique_id,
                _dump_ids(item.unique_ids),
                item.updated_at,
                item.id,
            ),
        )
        self._conn.commit()

    def update_item_status(
        self,
        item_id: str,
        status: str | None,
        progress: float | None = None,
        error: str | None = None,
    ) -> None:
        """Update the processing status; progress and error only when given."""
        assignments = ["processing_status = ?", "updated_at = ?"]
        params: list = [status, utc_now()]
        if progress is not None:
            assignments.append("processing_progress = ?")
            params.append(progress)
        if error is not None:
            assignments.append("processing_error = ?")
            params.append(error)
        params.append(item_id)
        self._conn.execute(
            f"UPDATE items SET {', '.join(assignments)} WHERE id = ?", params
        )
        self._conn.commit()

    def clear_processing(self, base_id: str, only_status: str | None = None) -> int:
        """Reset the processing status of a base's items to NULL.

        Args:
            base_id: Knowledge base whose items are cleared.
            only_status: Restrict to items currently in this status.

        Returns:
            Number of items changed.
        """
        if only_status is None:
            cur = self._conn.execute(
                "UPDATE items SET processing_status = NULL, updated_at = ? "
                "WHERE base_id = ? AND processing_status IS NOT NULL",
                (utc_now(), base_id),
            )
        else:
            cur = self._conn.execute(
                "UPDATE items SET processing_status = NULL, updated_at = ? "
                "WHERE base_id = ? AND processing_status = ?",
                (utc_now(), base_id, only_status),
            )
        self._conn.commit()
        return cur.rowcount

    def delete_item(self, item_id: str) -> None:
        self._conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def add_note(self, note_id: str, content: str) -> None:
        now = utc_now()
        self._conn.execute(
            "INSERT INTO notes (id, content, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (note_id, content, now, now),
        )
        self._conn.commit()

    def get_note(self, note_id: str) -> str | None:
        """Return the note body for *note_id*, or None if missing."""
        row = self._conn.execute(
            "SELECT content FROM notes WHERE id = ?", (note_id,)
        ).fetchone()
        return row["content"] if row else None

    def update_note(self, note_id: str, content: str) -> bool:
        """Replace a note body. Returns False if the note does not exist."""
        cur = self._conn.execute(
            "UPDATE notes SET content = ?, updated_at = ? WHERE id = ?",
            (content, utc_now(), note_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def delete_note(self, note_id: str) -> None:
        self._conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        self._conn.commit()


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _dump_ids(ids: list[str] | None) -> str | None:
    return json.dumps(ids) if ids is not None else None


def _item_params(item: KnowledgeItem) -> tuple:
    return (
        item.id,
        item.base_id,
        item.type,
        item.content_json(),
        item.processing_status,
        item.processing_progress,
        item.processing_error,
        item.retry_count,
        item.unique_id,
        _dump_ids(item.unique_ids),
        item.created_at,
        item.updated_at,
    )


def _row_to_base(row: sqlite3.Row) -> KnowledgeBase:
    return KnowledgeBase(
        id=row["id"],
        name=row["name"],
        notion_database_id=row["notion_database_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_item(row: sqlite3.Row) -> KnowledgeItem:
    return KnowledgeItem(
        id=row["id"],
        base_id=row["base_id"],
        type=row["type"],
        content=KnowledgeItem.content_from_json(row["content"]),
        processing_status=row["processing_status"],
        processing_progress=row["processing_progress"],
        processing_error=row["processing_error"],
        retry_count=row["retry_count"],
        unique_id=row["unique_id"],
        unique_ids=json.loads(row["unique_ids"]) if row["unique_ids"] else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
