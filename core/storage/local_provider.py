from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalDocumentStore:
    """Writes saved documents under a local directory when no object store is configured."""

    def __init__(self, root_dir: str | Path) -> None:
        root = Path(root_dir)
        self._root = root if root.is_absolute() else Path.cwd() / root

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, object_key: str) -> Path:
        file_path = (self._root / object_key).resolve()
        if self._root.resolve() not in file_path.parents:
            raise ValueError(f"Object key {object_key!r} escapes the download directory")
        return file_path

    def save_bytes(self, *, object_key: str, payload: bytes) -> Path:
        if not self._root.exists():
            self._root.mkdir(parents=True, exist_ok=True)
            logger.info("Created download directory %s", self._root)
        file_path = self._resolve(object_key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(payload)
        return file_path

    def read_bytes(self, *, object_key: str) -> bytes:
        return self._resolve(object_key).read_bytes()

