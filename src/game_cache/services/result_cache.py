"""Short-lived search result cache, separate from the entity cache."""

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable

from game_cache.config import settings
from game_cache.entities import SearchRequest, SearchResult

logger = logging.getLogger(__name__)


@dataclass
class _CachedResult:
    result: SearchResult
    stored_at: float
    strategy: str


class ResultCache:
    """Insertion-ordered cache of search pages keyed by normalized request.

    Entries expire after ``ttl`` seconds; when full, the oldest inserted
    entry is dropped. Hits are returned with ``cache_hit=True``.
    """

    def __init__(
        self,
        ttl: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl if ttl is not None else settings.result_cache_ttl
        self._max_entries = max_entries or settings.result_cache_max_entries
        self._clock = clock
        self._entries: dict[str, _CachedResult] = {}

    @staticmethod
    def key_for(request: SearchRequest) -> str:
        return (
            f"search:{request.normalized_query}:{request.page}:{request.page_size}"
            f":{request.strategy.value}:{request.source}"
        )

    def get(self, request: SearchRequest) -> SearchResult | None:
        key = self.key_for(request)
        cached = self._entries.get(key)
        if cached is None:
            return None
        if self._clock() - cached.stored_at >= self._ttl:
            del self._entries[key]
            logger.debug("Result cache expired: %s", key)
            return None
        logger.debug("Result cache hit: %s", key)
        return replace(cached.result, cache_hit=True)

    def set(self, request: SearchRequest, result: SearchResult) -> None:
        key = self.key_for(request)
        self._entries.pop(key, None)
        while len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[key] = _CachedResult(
            result=replace(result, cache_hit=False),
            stored_at=self._clock(),
            strategy=request.strategy.value,
        )

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> dict[str, Any]:
        """Size, limits and per-entry age for diagnostics."""
        now = self._clock()
        return {
            "size": len(self._entries),
            "max_size": self._max_entries,
            "ttl": self._ttl,
            "entries": [
                {
                    "key": key,
                    "age": round(now - cached.stored_at, 3),
                    "strategy": cached.strategy,
                    "sources": sorted(cached.result.sources),
                }
                for key, cached in self._entries.items()
            ],
        }

    def __len__(self) -> int:
        return len(self._entries)
