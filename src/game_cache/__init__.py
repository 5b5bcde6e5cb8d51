"""Game Catalog Cache - entity caching and search orchestration for game catalogs.

This package provides a layered architecture over the IGDB and RAWG APIs:

Layers:
    - protocols: Interface contracts (UpstreamSource, CacheStorage)
    - repositories: Provider clients and persistence backends
    - services: Entity cache, search orchestrator, listing feeds, gateway
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from game_cache.services import CatalogGateway, EntityCache, SearchOrchestrator

    gateway = CatalogGateway.create()
    cache = EntityCache.create(fetcher=gateway.get_game)
    game = await cache.fetch("rawg_3498")
    ```

For HTTP API:
    ```python
    from game_cache.api.app import create_app
    ```
"""

from game_cache.config import get_redis_client, settings
from game_cache.entities import (
    CacheEntry,
    FetchState,
    Game,
    ListingKind,
    SearchRequest,
    SearchResult,
    SearchStrategy,
)
from game_cache.errors import (
    CacheCorruption,
    CatalogError,
    ErrorKind,
    NetworkError,
    NotFound,
    ServiceUnavailable,
    ValidationError,
)
from game_cache.protocols import CacheStorage, UpstreamSource
from game_cache.repositories import FileCacheStorage, IgdbSource, RawgSource, RedisCacheStorage
from game_cache.services import (
    CatalogGateway,
    ConnectivityProber,
    Debouncer,
    EntityCache,
    ListingFeed,
    ResultCache,
    SearchOrchestrator,
)

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "CacheStorage",
    "UpstreamSource",
    # Services (business logic)
    "CatalogGateway",
    "ConnectivityProber",
    "Debouncer",
    "EntityCache",
    "ListingFeed",
    "ResultCache",
    "SearchOrchestrator",
    # Repositories (data access)
    "FileCacheStorage",
    "IgdbSource",
    "RawgSource",
    "RedisCacheStorage",
    # Entities (domain models)
    "CacheEntry",
    "FetchState",
    "Game",
    "ListingKind",
    "SearchRequest",
    "SearchResult",
    "SearchStrategy",
    # Errors
    "CatalogError",
    "CacheCorruption",
    "ErrorKind",
    "NetworkError",
    "NotFound",
    "ServiceUnavailable",
    "ValidationError",
]
