"""Keyed entity cache with TTL staleness, bounded capacity and persistence.

Owns the eviction and staleness policy, a per-key single-flight fetch
state machine with a retry cap, and the versioned persistence contract.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Generic, TypeVar

from game_cache.config import settings
from game_cache.entities import CacheEntry, FetchState, FetchStatus, Game, Provenance
from game_cache.errors import CacheCorruption, CatalogError, classify
from game_cache.protocols import CacheStorage

from . import migrations

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _game_to_dict(game: Game) -> dict[str, Any]:
    return game.to_dict()


class EntityCache(Generic[T]):
    """Shared keyed store of upstream entities.

    The cache is an explicitly constructed instance (no module-level
    singleton) so tests and tenants can each own one. Expected upstream
    failures never escape ``fetch``; they are recorded in the key's
    ``FetchState`` and signalled by a ``None`` return.

    Every map mutation happens under one cache-wide lock because eviction
    scans the whole key set.

    Example:
        ```python
        async with EntityCache(fetcher=gateway.get_game, storage=storage) as cache:
            game = await cache.fetch("igdb_1942")
            if game is None:
                print(cache.state("igdb_1942").error)
        ```
    """

    def __init__(
        self,
        fetcher: Callable[[str], Awaitable[T]],
        storage: CacheStorage | None = None,
        capacity: int | None = None,
        ttl: float | None = None,
        max_retries: int | None = None,
        sweep_interval: float | None = None,
        timeout: float | None = None,
        encode_value: Callable[[T], dict[str, Any]] = _game_to_dict,
        decode_value: Callable[[dict[str, Any]], T] = Game.from_dict,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the entity cache.

        Args:
            fetcher: Coroutine function loading one entity by key from upstream.
            storage: Persistence backend. None keeps the cache in memory only.
            capacity: Entry count above which eviction runs. Defaults to settings.
            ttl: Seconds an entry stays fresh. Defaults to settings.
            max_retries: Failed fetches allowed per key before it is blocked.
            sweep_interval: Seconds between background staleness sweeps.
            timeout: Upper bound in seconds for one upstream fetch.
            encode_value: Turns a value into a JSON-compatible dict for persistence.
            decode_value: Inverse of ``encode_value``.
            clock: Time source returning Unix seconds.
        """
        self._fetcher = fetcher
        self._storage = storage
        self._capacity = capacity or settings.entity_cache_capacity
        self._ttl = ttl or settings.entity_cache_ttl
        self._max_retries = max_retries or settings.entity_cache_max_retries
        self._sweep_interval = sweep_interval or settings.entity_cache_sweep_interval
        self._timeout = timeout or settings.upstream_timeout
        self._encode_value = encode_value
        self._decode_value = decode_value
        self._clock = clock

        if self._capacity < 1:
            raise ValueError("capacity must be at least 1")
        if self._max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self._entries: dict[str, CacheEntry[T]] = {}
        self._states: dict[str, FetchState] = {}
        # Monotonic access sequence; breaks ties between equal timestamps.
        self._access_seq: dict[str, int] = {}
        self._seq = 0
        self._lock = threading.RLock()
        self._maintenance: asyncio.Task | None = None
        self._loaded = False

    @classmethod
    def create(
        cls,
        fetcher: Callable[[str], Awaitable[T]],
        storage: CacheStorage | None = None,
        **options: Any,
    ) -> "EntityCache[T]":
        """Factory method to create an EntityCache with settings defaults.

        The persisted state (if any) is loaded immediately.
        """
        cache = cls(fetcher=fetcher, storage=storage, **options)
        cache.load()
        return cache

    async def start(self) -> None:
        """Rehydrate from storage and start the background sweep."""
        if not self._loaded:
            self.load()
        if self._maintenance is None or self._maintenance.done():
            self._maintenance = asyncio.create_task(self._maintain())
            logger.info(
                "Entity cache started: %d entries, capacity %d, ttl %.0fs",
                len(self._entries),
                self._capacity,
                self._ttl,
            )

    async def close(self) -> None:
        """Stop the background sweep and persist the current entries."""
        if self._maintenance is not None:
            self._maintenance.cancel()
            await asyncio.gather(self._maintenance, return_exceptions=True)
            self._maintenance = None
        self.save()
        logger.info("Entity cache stopped")

    async def __aenter__(self) -> "EntityCache[T]":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _maintain(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            removed = self.clear_stale()
            if removed:
                logger.info("Staleness sweep removed %d entries", removed)
            await asyncio.to_thread(self.save)

    def _touch(self, key: str, now: float) -> None:
        self._seq += 1
        self._access_seq[key] = self._seq
        self._entries[key].last_accessed_at = now

    def get(self, key: str) -> CacheEntry[T] | None:
        """Return the entry for ``key`` and mark it accessed.

        Stale entries are returned as-is; use ``fetch`` to refresh.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._touch(key, self._clock())
            return entry

    def peek(self, key: str) -> CacheEntry[T] | None:
        """Return the entry without counting it as an access."""
        return self._entries.get(key)

    def is_fresh(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock(), self._ttl)

    def put(self, key: str, value: T, provenance: Provenance = Provenance.UPSTREAM) -> CacheEntry[T]:
        """Insert or replace an entry and reset its fetch state.

        An upstream value advances ``fetched_at`` and ``fetch_count``; a value
        re-inserted from a cache keeps the existing freshness metadata.
        Eviction runs afterwards if the cache is now over capacity.
        """
        now = self._clock()
        with self._lock:
            existing = self._entries.get(key)
            upstream = provenance is Provenance.UPSTREAM
            if existing is None:
                entry = CacheEntry(
                    value=value,
                    fetched_at=now,
                    last_accessed_at=now,
                    fetch_count=1,
                    provenance=provenance,
                )
            else:
                entry = CacheEntry(
                    value=value,
                    fetched_at=now if upstream else existing.fetched_at,
                    last_accessed_at=now,
                    fetch_count=existing.fetch_count + 1 if upstream else existing.fetch_count,
                    provenance=provenance,
                )
            self._entries[key] = entry
            self._states[key] = FetchState()
            self._touch(key, now)

            if len(self._entries) > self._capacity:
                self.optimize_cache()
        return entry

    async def fetch(self, key: str, force: bool = False) -> T | None:
        """Return a fresh value for ``key``, fetching upstream if needed.

        Returns None without touching the network when a fetch for the key
        is already in flight or the key has used up its retries. Upstream
        failures are recorded in ``state(key)`` and also yield None.

        Args:
            key: Entity id
            force: Skip the freshness check and always go upstream
        """
        state = self._states.get(key)
        if state is not None and state.is_loading:
            logger.debug("Fetch for %s already in flight, skipping", key)
            return None

        if not force:
            entry = self.get(key)
            if entry is not None and entry.is_fresh(self._clock(), self._ttl):
                logger.debug("Cache hit for %s", key)
                return entry.value

        if state is not None and state.retry_count >= self._max_retries:
            logger.debug("Fetch for %s blocked after %d failures", key, state.retry_count)
            return None

        with self._lock:
            retry_count = state.retry_count if state is not None else 0
            self._states[key] = FetchState(status=FetchStatus.LOADING, retry_count=retry_count)

        try:
            value = await asyncio.wait_for(self._fetcher(key), timeout=self._timeout)
        except asyncio.CancelledError:
            self._finish_cancelled(key)
            raise
        except (CatalogError, asyncio.TimeoutError) as e:
            self._record_failure(key, e)
            return None
        except Exception as e:
            self._record_failure(key, e)
            raise

        self.put(key, value, Provenance.UPSTREAM)
        return value

    def _record_failure(self, key: str, exc: BaseException) -> None:
        kind = classify(exc)
        message = str(exc) or f"Upstream request timed out after {self._timeout:.1f}s"
        with self._lock:
            previous = self._states.get(key)
            retry_count = (previous.retry_count if previous is not None else 0) + 1
            self._states[key] = FetchState(
                status=FetchStatus.ERROR,
                error=message,
                error_kind=kind,
                retry_count=retry_count,
            )
        logger.warning("Fetch for %s failed (%s, attempt %d): %s", key, kind.value, retry_count, message)

    def _finish_cancelled(self, key: str) -> None:
        with self._lock:
            state = self._states.get(key)
            if state is not None and state.is_loading:
                state.status = FetchStatus.IDLE

    def state(self, key: str) -> FetchState:
        """Return the fetch state for ``key`` (idle if never fetched)."""
        return self._states.get(key) or FetchState()

    def reset(self, key: str) -> None:
        """Forget failures for ``key`` so it may be fetched again."""
        with self._lock:
            state = self._states.get(key)
            if state is not None and not state.is_loading:
                del self._states[key]

    def reset_all(self) -> None:
        with self._lock:
            self._drop_settled_states()

    def _drop_settled_states(self) -> None:
        self._states = {k: s for k, s in self._states.items() if s.is_loading}

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)
        self._access_seq.pop(key, None)
        state = self._states.get(key)
        if state is not None and not state.is_loading:
            del self._states[key]

    def evict_key(self, key: str) -> bool:
        with self._lock:
            existed = key in self._entries
            self._remove(key)
            return existed

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._access_seq.clear()
            self._drop_settled_states()
        logger.info("Entity cache cleared (%d entries)", count)
        return count

    def clear_stale(self, max_age: float | None = None) -> int:
        """Remove every entry whose age since last fetch is >= ``max_age``.

        Args:
            max_age: Age threshold in seconds. Defaults to the cache TTL.

        Returns:
            Number of entries removed
        """
        max_age = self._ttl if max_age is None else max_age
        now = self._clock()
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.age(now) >= max_age]
            for key in stale:
                self._remove(key)
        return len(stale)

    def optimize_cache(self) -> int:
        """Keep the ``capacity`` most recently accessed entries, drop the rest.

        Returns:
            Number of entries evicted
        """
        with self._lock:
            if len(self._entries) <= self._capacity:
                return 0

            ranked = sorted(
                self._entries,
                key=lambda k: (self._entries[k].last_accessed_at, self._access_seq.get(k, 0)),
                reverse=True,
            )
            evicted = ranked[self._capacity:]
            for key in evicted:
                self._remove(key)

        logger.info("Evicted %d least recently accessed entries", len(evicted))
        return len(evicted)

    def dumps(self) -> str:
        """Serialize the entries (not the fetch states) to the current schema."""
        with self._lock:
            records = {
                key: migrations.PersistedEntry(
                    value=self._encode_value(entry.value),
                    fetched_at=entry.fetched_at,
                    last_accessed_at=entry.last_accessed_at,
                    fetch_count=entry.fetch_count,
                    provenance=entry.provenance,
                )
                for key, entry in self._entries.items()
            }
        return migrations.encode(records)

    def loads(self, blob: str) -> int:
        """Replace the entries with a persisted blob, migrating old schemas.

        Raises:
            CacheCorruption: If the blob cannot be read, migrated or decoded
        """
        document = migrations.decode(blob)
        entries: dict[str, CacheEntry[T]] = {}
        for key, record in document.entries.items():
            try:
                value = self._decode_value(record.value)
            except (KeyError, TypeError, ValueError) as e:
                raise CacheCorruption(f"Persisted value for {key!r} cannot be decoded") from e
            entries[key] = CacheEntry(
                value=value,
                fetched_at=record.fetched_at,
                last_accessed_at=record.last_accessed_at,
                fetch_count=record.fetch_count,
                provenance=record.provenance,
            )

        with self._lock:
            self._entries = entries
            self._drop_settled_states()
            self._access_seq.clear()
            for key in sorted(entries, key=lambda k: entries[k].last_accessed_at):
                self._seq += 1
                self._access_seq[key] = self._seq
        return len(entries)

    def load(self) -> int:
        """Rehydrate from storage. Unreadable data leaves the cache empty.

        Returns:
            Number of entries loaded
        """
        self._loaded = True
        if self._storage is None:
            return 0

        try:
            blob = self._storage.load()
        except Exception as e:
            logger.warning("Could not read persisted cache, starting empty: %s", e)
            return 0
        if blob is None:
            return 0

        try:
            count = self.loads(blob)
        except CacheCorruption as e:
            logger.warning("Discarding persisted cache: %s", e.message)
            self.clear()
            return 0

        logger.info("Loaded %d cached entities", count)
        if len(self._entries) > self._capacity:
            self.optimize_cache()
        return count

    def save(self) -> bool:
        """Persist the entries. Failures are logged, not raised.

        Returns:
            True if the blob was written
        """
        if self._storage is None:
            return False
        try:
            self._storage.save(self.dumps())
        except Exception as e:
            logger.warning("Could not persist entity cache: %s", e)
            return False
        return True

    def stats(self, top_n: int = 5) -> dict[str, Any]:
        """Diagnostic snapshot of the cache.

        Returns:
            Dictionary with count, approximate serialized size in bytes,
            number of stale entries and the most-fetched keys
        """
        now = self._clock()
        with self._lock:
            stale = sum(1 for entry in self._entries.values() if not entry.is_fresh(now, self._ttl))
            top = sorted(self._entries.items(), key=lambda kv: kv[1].fetch_count, reverse=True)[:top_n]
            loading = sum(1 for s in self._states.values() if s.status is FetchStatus.LOADING)
            failing = sum(1 for s in self._states.values() if s.status is FetchStatus.ERROR)
            size = len(self.dumps().encode("utf-8"))

        return {
            "count": len(self._entries),
            "capacity": self._capacity,
            "ttl": self._ttl,
            "approximate_size_bytes": size,
            "stale_count": stale,
            "loading_count": loading,
            "error_count": failing,
            "top_fetched": [{"key": key, "fetch_count": entry.fetch_count} for key, entry in top],
        }

    def keys(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def max_retries(self) -> int:
        return self._max_retries
