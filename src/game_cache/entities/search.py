"""Search and listing entities."""

import math
from dataclasses import dataclass, field
from enum import Enum

from .game import Game

AUTO_SOURCE = "auto"


class SearchStrategy(str, Enum):
    """Fan-out order and merge behaviour for a search.

    ``COMBINED`` queries every source concurrently and merges the answers.
    The ``*_FIRST`` strategies query one source and only fall back to the
    next when it errors or returns nothing.
    """

    COMBINED = "combined"
    IGDB_FIRST = "igdb_first"
    RAWG_FIRST = "rawg_first"

    @property
    def primary(self) -> str | None:
        """Provider id tried first, or None for ``COMBINED``."""
        if self is SearchStrategy.COMBINED:
            return None
        return self.value.removesuffix("_first")


class ListingKind(str, Enum):
    TRENDING = "trending"
    POPULAR = "popular"
    UPCOMING = "upcoming"
    RECENT = "recent"


class SearchStatus(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SearchRequest:
    """A single search call. Ephemeral, never persisted."""

    query: str
    page: int = 1
    page_size: int = 20
    strategy: SearchStrategy = SearchStrategy.COMBINED
    source: str = AUTO_SOURCE
    use_cache: bool = True

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @property
    def normalized_query(self) -> str:
        return " ".join(self.query.split()).lower()


@dataclass(frozen=True)
class SourcePage:
    """One provider's answer to a search: a page of games and the total."""

    items: list[Game]
    total: int


@dataclass(frozen=True)
class SearchResult:
    """A page of search results with provenance.

    Pagination flags are derived from ``total_count`` so they can never
    disagree with it.
    """

    items: list[Game] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 20
    sources: frozenset[str] = field(default_factory=frozenset)
    cache_hit: bool = False
    elapsed_ms: float = 0.0

    @property
    def has_next_page(self) -> bool:
        return self.total_count > self.page * self.page_size

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @classmethod
    def empty(cls, page: int = 1, page_size: int = 20) -> "SearchResult":
        return cls(items=[], total_count=0, page=page, page_size=page_size)
