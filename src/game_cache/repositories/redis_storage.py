"""Redis implementation of CacheStorage.

Stores the whole serialized entity cache under a single string key. It
satisfies the CacheStorage protocol through structural typing.
"""

import redis

from game_cache.config import get_redis_client, settings


class RedisCacheStorage:
    """Redis-backed persistence for the entity cache.

    Example:
        ```python
        storage = RedisCacheStorage.create()
        cache = EntityCache(fetcher=gateway.get_game, storage=storage)
        ```
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key: str | None = None,
        ttl: int | None = None,
    ) -> None:
        """Initialize the Redis storage.

        Args:
            redis_client: Redis client instance. If None, creates default.
            key: Key holding the serialized cache. Defaults to settings.
            ttl: Optional expiry in seconds for the stored blob.
        """
        self._client = redis_client or get_redis_client()
        self._key = key or settings.cache_storage_key
        self._ttl = ttl

    @classmethod
    def create(cls, key: str | None = None, ttl: int | None = None) -> "RedisCacheStorage":
        """Factory method to create RedisCacheStorage with defaults."""
        return cls(key=key, ttl=ttl)

    def load(self) -> str | None:
        raw = self._client.get(self._key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    def save(self, blob: str) -> None:
        if self._ttl:
            self._client.set(self._key, blob, ex=self._ttl)
        else:
            self._client.set(self._key, blob)

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    @property
    def key(self) -> str:
        return self._key
