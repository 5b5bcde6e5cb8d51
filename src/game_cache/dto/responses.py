"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from game_cache.entities import CacheEntry, FetchState, Game, SearchResult


class GameItem(BaseModel):
    """Canonical game record as returned by the API."""

    id: str = Field(..., description="Canonical id, prefixed with the provider")
    name: str
    source: str = Field(..., description="Provider that produced the record")
    source_id: str
    slug: str | None = None
    summary: str | None = None
    cover_url: str | None = None
    rating: float | None = Field(None, description="Aggregate rating on a 0-100 scale")
    release_date: str | None = Field(None, description="ISO date")
    genres: list[str] = Field(default_factory=list)
    platforms: list[str] = Field(default_factory=list)
    detailed: bool = Field(False, description="Whether the record came from a detail endpoint")

    @classmethod
    def from_entity(cls, game: Game) -> "GameItem":
        return cls(**game.to_dict())


class FetchStateResponse(BaseModel):
    """Per-key fetch bookkeeping."""

    status: str = Field(..., description="idle, loading or error")
    error: str | None = None
    error_kind: str | None = None
    retry_count: int = Field(0, ge=0)

    @classmethod
    def from_entity(cls, state: FetchState) -> "FetchStateResponse":
        return cls(
            status=state.status.value,
            error=state.error,
            error_kind=state.error_kind.value if state.error_kind else None,
            retry_count=state.retry_count,
        )


class GameResponse(BaseModel):
    """A cached game plus its cache metadata."""

    game: GameItem
    fresh: bool = Field(..., description="Whether the entry is younger than the cache TTL")
    fetched_at: float = Field(..., description="Last upstream refresh (Unix timestamp)")
    last_accessed_at: float
    fetch_count: int = Field(..., ge=1)
    provenance: str = Field(..., description="cache or upstream")
    state: FetchStateResponse

    @classmethod
    def from_entry(cls, entry: CacheEntry[Game], fresh: bool, state: FetchState) -> "GameResponse":
        return cls(
            game=GameItem.from_entity(entry.value),
            fresh=fresh,
            fetched_at=entry.fetched_at,
            last_accessed_at=entry.last_accessed_at,
            fetch_count=entry.fetch_count,
            provenance=entry.provenance.value,
            state=FetchStateResponse.from_entity(state),
        )


class SearchResponse(BaseModel):
    """One page of search results with provenance and pagination."""

    query: str
    items: list[GameItem] = Field(default_factory=list)
    total_count: int = Field(0, ge=0)
    page: int = Field(1, ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(0, ge=0)
    has_next_page: bool = False
    has_previous_page: bool = False
    sources: list[str] = Field(default_factory=list, description="Providers that answered")
    cache_hit: bool = Field(False, description="Served from the short-lived result cache")
    elapsed_ms: float = Field(0.0, ge=0.0)
    has_searched: bool = Field(..., description="False when the query was too short to search")

    @classmethod
    def from_result(cls, query: str, result: SearchResult, has_searched: bool) -> "SearchResponse":
        return cls(
            query=query,
            items=[GameItem.from_entity(game) for game in result.items],
            total_count=result.total_count,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            has_next_page=result.has_next_page,
            has_previous_page=result.has_previous_page,
            sources=sorted(result.sources),
            cache_hit=result.cache_hit,
            elapsed_ms=result.elapsed_ms,
            has_searched=has_searched,
        )


class FeedResponse(BaseModel):
    """Current state of a listing feed."""

    kind: str
    items: list[GameItem] = Field(default_factory=list)
    has_data: bool = False
    error: str | None = None
    error_kind: str | None = None
    notice: str | None = Field(None, description="Set only for retryable failures")
    sources: list[str] = Field(default_factory=list)
    source_info: dict[str, Any] | None = None
    last_updated: float | None = None
    connectivity: dict[str, bool] | None = None


class CacheStatsResponse(BaseModel):
    """Entity cache diagnostics."""

    count: int = Field(..., ge=0)
    capacity: int = Field(..., ge=1)
    ttl: float = Field(..., description="Freshness window in seconds")
    approximate_size_bytes: int = Field(..., ge=0)
    stale_count: int = Field(..., ge=0)
    loading_count: int = Field(0, ge=0)
    error_count: int = Field(0, ge=0)
    top_fetched: list[dict[str, Any]] = Field(default_factory=list)


class ResultCacheStatsResponse(BaseModel):
    """Search result cache diagnostics."""

    size: int = Field(..., ge=0)
    max_size: int = Field(..., ge=0)
    ttl: float
    entries: list[dict[str, Any]] = Field(default_factory=list)


class ClearResponse(BaseModel):
    """Response DTO for delete operations."""

    success: bool
    deleted_count: int = Field(..., ge=0)
    message: str


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="'healthy', 'degraded' or 'offline'")
    sources: dict[str, bool] = Field(default_factory=dict, description="Reachability per provider")
    storage_healthy: bool | None = Field(None, description="Whether the persistence backend answers")
    cache_entries: int = Field(0, ge=0)
