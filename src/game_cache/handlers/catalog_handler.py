"""HTTP handlers for the game cache, search and listing feeds.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import logging
from typing import Any

from fastapi import HTTPException, status

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
from game_cache.entities import FetchStatus, Game, ListingKind, SearchStatus
from game_cache.errors import ErrorKind, describe
from game_cache.protocols import CacheStorage
from game_cache.services import (
    CatalogGateway,
    ConnectivityProber,
    EntityCache,
    ListingFeed,
    ResultCache,
    SearchOrchestrator,
)

logger = logging.getLogger(__name__)

_STATUS_FOR_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.CORRUPTION: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _http_error(kind: ErrorKind | None, detail: str | None = None) -> HTTPException:
    kind = kind or ErrorKind.SERVICE_UNAVAILABLE
    return HTTPException(status_code=_STATUS_FOR_KIND[kind], detail=detail or describe(kind))


class CatalogHandler:
    """HTTP handlers for catalog operations.

    This handler delegates to the services and handles HTTP-specific
    concerns like:
    - Converting entities to DTOs
    - Mapping recorded failures onto status codes
    - Building one search session per request

    Example:
        ```python
        handler = CatalogHandler(gateway=gateway, entity_cache=cache, feeds=feeds)

        @app.get("/games/{game_id}", response_model=GameResponse)
        async def get_game(game_id: str):
            return await handler.get_game(game_id)
        ```
    """

    def __init__(
        self,
        gateway: CatalogGateway,
        entity_cache: EntityCache[Game],
        feeds: dict[ListingKind, ListingFeed],
        prober: ConnectivityProber | None = None,
        result_cache: ResultCache | None = None,
        storage: CacheStorage | None = None,
    ) -> None:
        """Initialize the catalog handler.

        Args:
            gateway: Fan-out gateway over the upstream sources.
            entity_cache: Shared entity cache.
            feeds: One listing feed per kind.
            prober: Connectivity prober for health reporting.
            result_cache: Search result cache shared by every session.
            storage: Persistence backend, checked by the health endpoint.
        """
        self._gateway = gateway
        self._cache = entity_cache
        self._feeds = feeds
        self._prober = prober
        self._result_cache = result_cache
        self._storage = storage
        # Suggestions and result-cache admin never touch session state, so
        # one long-lived session serves them.
        self._session = self._new_session()

    def _new_session(self, page_size: int | None = None) -> SearchOrchestrator:
        return SearchOrchestrator(
            gateway=self._gateway,
            entity_cache=self._cache,
            prober=self._prober,
            result_cache=self._result_cache,
            debounce_delay=0,
            page_size=page_size,
            auto_search=False,
        )

    async def get_game(self, game_id: str, force: bool = False) -> GameResponse:
        """Handle GET /games/{game_id} requests.

        A stale entry is still served when the refresh fails.

        Raises:
            HTTPException: 404/400/503 depending on the recorded failure,
                409 if the key is already being fetched
        """
        await self._cache.fetch(game_id, force=force)
        entry = self._cache.get(game_id)
        state = self._cache.state(game_id)

        if entry is not None:
            return GameResponse.from_entry(entry, self._cache.is_fresh(game_id), state)
        if state.status is FetchStatus.LOADING:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{game_id} is already being fetched",
            )
        raise _http_error(state.error_kind, state.error)

    async def reset_game(self, game_id: str) -> FetchStateResponse:
        """Handle POST /games/{game_id}/reset requests."""
        self._cache.reset(game_id)
        return FetchStateResponse.from_entity(self._cache.state(game_id))

    async def evict_game(self, game_id: str) -> ClearResponse:
        """Handle DELETE /cache/{game_id} requests."""
        if not self._cache.evict_key(game_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{game_id} is not cached",
            )
        return ClearResponse(success=True, deleted_count=1, message=f"Evicted {game_id}")

    async def clear_cache(self) -> ClearResponse:
        """Handle DELETE /cache requests."""
        count = self._cache.clear()
        return ClearResponse(success=True, deleted_count=count, message="Cache cleared successfully")

    async def get_cache_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests."""
        return CacheStatsResponse(**self._cache.stats())

    async def search(self, params: SearchParams) -> SearchResponse:
        """Handle GET /search requests.

        Queries below the minimum length answer 200 with no items and
        ``has_searched=false``.

        Raises:
            HTTPException: 503 when every source failed, 400 for bad options
        """
        session = self._new_session(page_size=params.page_size)
        try:
            result = await session.search(
                params.q,
                strategy=params.strategy,
                source=params.source,
                use_cache=params.use_cache,
                page=params.page,
            )
        finally:
            await session.close()

        if session.status is SearchStatus.FAILED:
            raise _http_error(session.error_kind, session.error)
        return SearchResponse.from_result(params.q, result, session.has_searched)

    async def get_suggestions(self, params: SuggestionParams) -> list[GameItem]:
        """Handle GET /search/suggestions requests. Never fails."""
        games = await self._session.get_suggestions(params.q, limit=params.limit)
        return [GameItem.from_entity(game) for game in games]

    async def get_search_cache_stats(self) -> ResultCacheStatsResponse:
        """Handle GET /search/cache/stats requests."""
        return ResultCacheStatsResponse(**self._session.get_cache_stats())

    async def clear_search_cache(self) -> ClearResponse:
        """Handle DELETE /search/cache requests."""
        count = self._session.clear_cache()
        return ClearResponse(
            success=True,
            deleted_count=count,
            message="Search cache cleared successfully",
        )

    def _feed(self, kind: ListingKind) -> ListingFeed:
        feed = self._feeds.get(kind)
        if feed is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No {kind.value} feed configured",
            )
        return feed

    async def get_feed(self, kind: ListingKind, params: FeedParams) -> FeedResponse:
        """Handle GET /feeds/{kind} requests.

        The feed is loaded on first access, on ``refresh`` and whenever the
        limit or source changes. A failed load still answers 200 with the
        last good items and the error fields set.
        """
        feed = self._feed(kind)
        changed = (params.limit not in (None, feed.limit)) or (params.source not in (None, feed.source))
        never_loaded = feed.last_updated is None and feed.error is None
        if params.refresh or changed or never_loaded:
            await feed.load(limit=params.limit, source=params.source)
        return self._feed_response(feed)

    async def retry_feed(self, kind: ListingKind) -> FeedResponse:
        """Handle POST /feeds/{kind}/retry requests."""
        feed = self._feed(kind)
        await feed.retry()
        return self._feed_response(feed)

    @staticmethod
    def _feed_response(feed: ListingFeed) -> FeedResponse:
        return FeedResponse(
            kind=feed.kind.value,
            items=[GameItem.from_entity(game) for game in feed.items],
            has_data=feed.has_data,
            error=feed.error,
            error_kind=feed.error_kind.value if feed.error_kind else None,
            notice=feed.notice,
            sources=feed.sources,
            source_info=feed.source_info(),
            last_updated=feed.last_updated,
            connectivity=feed.connectivity,
        )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests.

        Returns:
            'healthy' when every source answers, 'degraded' when some do,
            'offline' when none do
        """
        sources: dict[str, bool] = {}
        if self._prober is not None:
            sources = await self._prober.probe()

        if not sources or all(sources.values()):
            overall = "healthy"
        elif any(sources.values()):
            overall = "degraded"
        else:
            overall = "offline"

        storage_healthy = None
        health_check = getattr(self._storage, "health_check", None)
        if health_check is not None:
            storage_healthy = health_check()

        return HealthCheckResponse(
            status=overall,
            sources=sources,
            storage_healthy=storage_healthy,
            cache_entries=len(self._cache),
        )

    def info(self) -> dict[str, Any]:
        return {
            "sources": list(self._gateway.sources),
            "feeds": [kind.value for kind in self._feeds],
            "cache_capacity": self._cache.capacity,
            "cache_ttl": self._cache.ttl,
        }
