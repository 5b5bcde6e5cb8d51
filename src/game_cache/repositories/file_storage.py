"""Local file implementation of CacheStorage."""

import os
from pathlib import Path

from game_cache.config import settings


class FileCacheStorage:
    """Persist the entity cache to a single file on disk.

    Writes go to a temporary sibling first and are then renamed over the
    target, so a crash mid-write leaves the previous blob intact.
    """

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = Path(path or settings.cache_storage_path)

    @classmethod
    def create(cls, path: str | None = None) -> "FileCacheStorage":
        return cls(path=path)

    def load(self) -> str | None:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    def save(self, blob: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(blob, encoding="utf-8")
        os.replace(tmp, self._path)

    @property
    def path(self) -> Path:
        return self._path
