import logging
from typing import Annotated, Any, Callable

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from game_cache.api.dependencies import HandlerDep, Services, lifespan
from game_cache.config import settings
from game_cache.dto import (
    CacheStatsResponse,
    ClearResponse,
    FeedParams,
    FeedResponse,
    FetchStateResponse,
    GameItem,
    GameResponse,
    HealthCheckResponse,
    ResultCacheStatsResponse,
    SearchParams,
    SearchResponse,
    SuggestionParams,
)
from game_cache.entities import ListingKind

VERSION = "0.1.0"


def create_app(services_factory: Callable[[], Services] | None = None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        services_factory: Builds the service graph at startup. Defaults to
            the settings-driven wiring in ``dependencies.build_services``.
    """
    app = FastAPI(
        title="Game Catalog Cache API",
        description="Entity cache and search orchestration over IGDB and RAWG",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.services_factory = services_factory

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root(handler: HandlerDep) -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": "Game Catalog Cache API",
            "version": VERSION,
            **handler.info(),
            "endpoints": {
                "games": "/games/{game_id}",
                "cache": "/cache",
                "search": "/search",
                "feeds": "/feeds/{kind}",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: HandlerDep) -> HealthCheckResponse:
        return await handler.health_check()

    # Entity cache

    @app.get("/games/{game_id}", response_model=GameResponse)
    async def get_game(
        game_id: str,
        handler: HandlerDep,
        force: Annotated[bool, Query(description="Bypass freshness and refetch")] = False,
    ) -> GameResponse:
        """Fetch a game through the entity cache."""
        return await handler.get_game(game_id, force=force)

    @app.post("/games/{game_id}/reset", response_model=FetchStateResponse)
    async def reset_game(game_id: str, handler: HandlerDep) -> FetchStateResponse:
        """Clear the fetch state of a key, unblocking it after too many failures."""
        return await handler.reset_game(game_id)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: HandlerDep) -> CacheStatsResponse:
        return await handler.get_cache_stats()

    @app.delete("/cache/{game_id}", response_model=ClearResponse)
    async def evict_game(game_id: str, handler: HandlerDep) -> ClearResponse:
        return await handler.evict_game(game_id)

    @app.delete("/cache", response_model=ClearResponse)
    async def clear_cache(handler: HandlerDep) -> ClearResponse:
        return await handler.clear_cache()

    # Search

    @app.get("/search", response_model=SearchResponse)
    async def search(
        params: Annotated[SearchParams, Depends()],
        handler: HandlerDep,
    ) -> SearchResponse:
        """Search every configured source under the requested strategy."""
        return await handler.search(params)

    @app.get("/search/suggestions", response_model=list[GameItem])
    async def suggestions(
        params: Annotated[SuggestionParams, Depends()],
        handler: HandlerDep,
    ) -> list[GameItem]:
        return await handler.get_suggestions(params)

    @app.get("/search/cache/stats", response_model=ResultCacheStatsResponse)
    async def search_cache_stats(handler: HandlerDep) -> ResultCacheStatsResponse:
        return await handler.get_search_cache_stats()

    @app.delete("/search/cache", response_model=ClearResponse)
    async def clear_search_cache(handler: HandlerDep) -> ClearResponse:
        return await handler.clear_search_cache()

    # Listing feeds

    @app.get("/feeds/{kind}", response_model=FeedResponse)
    async def get_feed(
        kind: ListingKind,
        params: Annotated[FeedParams, Depends()],
        handler: HandlerDep,
    ) -> FeedResponse:
        return await handler.get_feed(kind, params)

    @app.post("/feeds/{kind}/retry", response_model=FeedResponse)
    async def retry_feed(kind: ListingKind, handler: HandlerDep) -> FeedResponse:
        return await handler.retry_feed(kind)

    return app


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "game_cache.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )


if __name__ == "__main__":
    main()
