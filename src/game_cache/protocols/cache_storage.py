"""Cache storage protocol.

Defines the interface for anything that can hold the serialized entity
cache between process restarts. The storage only moves an opaque string;
the entity cache owns the schema version and the migrations.

Implementations can include:
- Redis key (default for deployed services)
- Local JSON file
- Browser-like key/value stores
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheStorage(Protocol):
    """Protocol for cache persistence backends."""

    def load(self) -> str | None:
        """Read the persisted blob.

        Returns:
            The serialized cache, or None if nothing has been saved yet
        """
        ...

    def save(self, blob: str) -> None:
        """Persist the serialized cache, replacing any previous blob.

        Args:
            blob: Serialized cache document
        """
        ...
