"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis → file, RAWG → another catalog)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from game_cache.protocols import CacheStorage, UpstreamSource

    storage: CacheStorage = RedisCacheStorage.create()
    source: UpstreamSource = RawgSource.create()
    ```
"""

from .cache_storage import CacheStorage
from .upstream_source import UpstreamSource

__all__ = [
    "CacheStorage",
    "UpstreamSource",
]
