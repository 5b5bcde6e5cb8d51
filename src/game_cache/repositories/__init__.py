"""Repository layer for data access.

This layer hides external dependencies (provider HTTP APIs, Redis, the
local filesystem) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis → file, RAWG → another catalog)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from game_cache.protocols import CacheStorage, UpstreamSource

from .file_storage import FileCacheStorage
from .igdb_source import IgdbSource, normalize_igdb
from .rawg_source import RawgSource, normalize_rawg
from .redis_storage import RedisCacheStorage

__all__ = [
    "CacheStorage",
    "UpstreamSource",
    "FileCacheStorage",
    "IgdbSource",
    "RawgSource",
    "RedisCacheStorage",
    "normalize_igdb",
    "normalize_rawg",
]
