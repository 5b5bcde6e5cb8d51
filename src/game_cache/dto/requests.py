"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field

from game_cache.entities import AUTO_SOURCE, SearchStrategy


class SearchParams(BaseModel):
    """Query parameters for GET /search.

    The handler will convert this to a call on a search session.
    """

    q: str = Field(..., description="Search text. Shorter than the minimum yields no results")
    page: int = Field(1, description="1-based page number", ge=1)
    page_size: int | None = Field(None, description="Results per page", ge=1, le=100)
    strategy: SearchStrategy | None = Field(
        None,
        description="combined, igdb_first or rawg_first (server default if null)",
    )
    source: str = Field(AUTO_SOURCE, description="'auto' or a pinned provider id")
    use_cache: bool = Field(True, description="Consult the short-lived result cache")


class SuggestionParams(BaseModel):
    """Query parameters for GET /search/suggestions."""

    q: str = Field(..., description="Partial search text")
    limit: int = Field(5, description="Maximum number of suggestions", ge=1, le=20)


class FeedParams(BaseModel):
    """Query parameters for GET /feeds/{kind}."""

    limit: int | None = Field(None, description="Number of games to list", ge=1, le=50)
    source: str | None = Field(None, description="'auto' or a pinned provider id")
    refresh: bool = Field(False, description="Reload from upstream before answering")
