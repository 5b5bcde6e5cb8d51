"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services built once per process in the lifespan
    - Dependency functions retrieve from request.app.state
    - Tests swap the whole graph via ``app.state.services_factory``
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Annotated, Callable

from fastapi import Depends, FastAPI, Request

from game_cache.config import settings
from game_cache.entities import Game, ListingKind
from game_cache.handlers import CatalogHandler
from game_cache.protocols import CacheStorage, UpstreamSource
from game_cache.repositories import FileCacheStorage, IgdbSource, RawgSource, RedisCacheStorage
from game_cache.services import (
    CatalogGateway,
    ConnectivityProber,
    EntityCache,
    ListingFeed,
    ResultCache,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived service of one running app."""

    gateway: CatalogGateway
    entity_cache: EntityCache[Game]
    prober: ConnectivityProber
    result_cache: ResultCache
    feeds: dict[ListingKind, ListingFeed]
    storage: CacheStorage | None = None
    feed_polling: bool = False
    handler: CatalogHandler = field(init=False)

    def __post_init__(self) -> None:
        self.handler = CatalogHandler(
            gateway=self.gateway,
            entity_cache=self.entity_cache,
            feeds=self.feeds,
            prober=self.prober,
            result_cache=self.result_cache,
            storage=self.storage,
        )

    async def start(self) -> None:
        await self.entity_cache.start()
        if self.feed_polling:
            for feed in self.feeds.values():
                feed.start()

    async def close(self) -> None:
        await asyncio.gather(*(feed.close() for feed in self.feeds.values()))
        await self.entity_cache.close()
        await self.gateway.close()


def build_storage() -> CacheStorage | None:
    """Persistence backend selected by CACHE_STORAGE."""
    if settings.cache_storage == "redis":
        return RedisCacheStorage.create()
    if settings.cache_storage == "file":
        return FileCacheStorage.create()
    return None


def build_services(sources: list[UpstreamSource] | None = None) -> Services:
    """Wire the service graph from settings.

    Args:
        sources: Upstream providers. Defaults to IGDB and RAWG from settings.
    """
    if sources is None:
        sources = [IgdbSource.create(), RawgSource.create()]
    prober = ConnectivityProber({source.source_id: source for source in sources})
    gateway = CatalogGateway(sources, prober=prober)
    storage = build_storage()
    entity_cache = EntityCache(fetcher=gateway.get_game, storage=storage)
    feeds = {kind: ListingFeed(gateway, kind=kind, prober=prober) for kind in ListingKind}
    return Services(
        gateway=gateway,
        entity_cache=entity_cache,
        prober=prober,
        result_cache=ResultCache(),
        feeds=feeds,
        storage=storage,
        feed_polling=settings.feed_polling,
    )


def get_handler(request: Request) -> CatalogHandler:
    """Dependency injection for CatalogHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "catalog_handler", None)
    if handler is None:
        raise RuntimeError("CatalogHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Builds the service graph (or the one from ``app.state.services_factory``),
    starts the entity cache sweep and optional feed polling, and stores
    everything in app.state. On shutdown the cache is saved and every
    upstream client closed.
    """
    factory: Callable[[], Services] = getattr(app.state, "services_factory", None) or build_services
    services = factory()
    await services.start()

    app.state.services = services
    app.state.catalog_handler = services.handler
    logger.info(
        "Game cache API started: sources=%s storage=%s polling=%s",
        list(services.gateway.sources),
        type(services.storage).__name__ if services.storage else "none",
        services.feed_polling,
    )

    yield

    await services.close()
    del app.state.catalog_handler
    del app.state.services
    logger.info("Game cache API shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[CatalogHandler, Depends(get_handler)]