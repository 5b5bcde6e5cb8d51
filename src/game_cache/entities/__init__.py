"""Domain entities for internal representation.

These are plain dataclasses used by services and repositories. They are
NOT used for API contracts - use DTOs from the dto package for that.

Entities should have:
- No JSON schema or Pydantic validation
- No network or storage access
- Pure domain logic only
"""

from .cache_entry import CacheEntry, FetchState, FetchStatus, Provenance
from .game import Game
from .search import (
    AUTO_SOURCE,
    ListingKind,
    SearchRequest,
    SearchResult,
    SearchStatus,
    SearchStrategy,
    SourcePage,
)

__all__ = [
    "AUTO_SOURCE",
    "CacheEntry",
    "FetchState",
    "FetchStatus",
    "Game",
    "ListingKind",
    "Provenance",
    "SearchRequest",
    "SearchResult",
    "SearchStatus",
    "SearchStrategy",
    "SourcePage",
]
