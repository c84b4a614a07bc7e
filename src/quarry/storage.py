"""Local filesystem storage for materialized artifacts.

Every logical name is resolved under ``root``; names that escape it are
rejected. Writes are write-once: an existing target raises FileExistsError.
"""

from __future__ import annotations

from pathlib import Path


class FileStore:
    """Write-once text store rooted at a single directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def _abs(self, logical_name: str | Path) -> Path:
        p = (self.root / logical_name).resolve()
        if self.root not in p.parents:
            raise ValueError(f"Path outside of storage root: {logical_name}")
        return p

    def write(self, logical_name: str, body: str) -> str:
        """Create *logical_name* with *body* and return its absolute path.

        Raises:
            FileExistsError: If the target already exists.
            ValueError: If *logical_name* escapes the storage root.
        """
        p = self._abs(logical_name)
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "x", encoding="utf-8") as f:
            f.write(body)
        return str(p)

    def read(self, path: str | Path) -> str:
        p = self._abs(path)
        with open(p, "r", encoding="utf-8") as f:
            return f.read()

    def exists(self, logical_name: str | Path) -> bool:
        return self._abs(logical_name).exists()

    def owns(self, path: str | Path) -> bool:
        """True if *path* lies inside this store's root."""
        try:
            self._abs(path)
        except ValueError:
            return False
        return True

    def delete(self, path: str | Path) -> bool:
        """Remove a stored file. Returns False if it was already gone."""
        p = self._abs(path)
        try:
            p.unlink()
        except FileNotFoundError:
            return False
        return True
