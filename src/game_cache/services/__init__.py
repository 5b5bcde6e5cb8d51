"""Service layer for caching and search orchestration.

Services depend on protocols (UpstreamSource, CacheStorage), not on the
concrete httpx or redis implementations, so each one can be driven by
fakes in tests.

Architecture:
    Handler -> SearchOrchestrator / ListingFeed / EntityCache
            -> CatalogGateway -> UpstreamSource

Usage:
    ```python
    from game_cache.services import CatalogGateway, EntityCache, SearchOrchestrator

    gateway = CatalogGateway.create()
    cache = EntityCache.create(fetcher=gateway.get_game)
    session = SearchOrchestrator(gateway, entity_cache=cache)
    ```
"""

from .catalog_gateway import CatalogGateway, SourceHealth
from .connectivity import ConnectivityProber
from .debounce import Debouncer
from .entity_cache import EntityCache
from .feed import ListingFeed
from .result_cache import ResultCache
from .search_orchestrator import CancellationToken, SearchOrchestrator

__all__ = [
    "CancellationToken",
    "CatalogGateway",
    "ConnectivityProber",
    "Debouncer",
    "EntityCache",
    "ListingFeed",
    "ResultCache",
    "SearchOrchestrator",
    "SourceHealth",
]
