"""Cache entry and fetch state entities."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from game_cache.errors import ErrorKind

T = TypeVar("T")


class Provenance(str, Enum):
    """How the most recent value of an entry was obtained."""

    CACHE = "cache"
    UPSTREAM = "upstream"


class FetchStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


@dataclass
class CacheEntry(Generic[T]):
    """A cached value plus the metadata the eviction policy needs.

    ``fetched_at`` only moves on a successful upstream fetch, while
    ``last_accessed_at`` moves on every read. Eviction ranks entries by
    ``last_accessed_at``; staleness is judged on ``fetched_at``.

    Attributes:
        value: The cached entity
        fetched_at: Unix time of the last full refresh from upstream
        last_accessed_at: Unix time of the last read or write
        fetch_count: Number of upstream fetches (cache hits excluded)
        provenance: How the current value was obtained
    """

    value: T
    fetched_at: float
    last_accessed_at: float
    fetch_count: int = 1
    provenance: Provenance = Provenance.UPSTREAM

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl: float) -> bool:
        """Exactly-at-TTL counts as stale."""
        return self.age(now) < ttl


@dataclass
class FetchState:
    """Per-key fetch bookkeeping. Never persisted.

    While ``status`` is ``LOADING`` no second fetch for the same key starts.
    """

    status: FetchStatus = FetchStatus.IDLE
    error: str | None = None
    error_kind: ErrorKind | None = None
    retry_count: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status is FetchStatus.LOADING
