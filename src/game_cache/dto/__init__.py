"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import FeedParams, SearchParams, SuggestionParams
from .responses import (
    CacheStatsResponse,
    ClearResponse,
    FeedResponse,
    FetchStateResponse,
    GameItem,
    GameResponse,
    HealthCheckResponse,
    ResultCacheStatsResponse,
    SearchResponse,
)

__all__ = [
    "SearchParams",
    "SuggestionParams",
    "FeedParams",
    "GameItem",
    "GameResponse",
    "FetchStateResponse",
    "SearchResponse",
    "FeedResponse",
    "CacheStatsResponse",
    "ResultCacheStatsResponse",
    "ClearResponse",
    "HealthCheckResponse",
]
