"""Upstream source protocol.

Defines the interface for any content provider that can look up games by
id, search them, list curated feeds and report whether it is reachable.

Implementations can include:
- IGDB (Twitch) API
- RAWG API
- Any other catalog that can be normalized into ``Game``
"""

from typing import Protocol, runtime_checkable

from game_cache.entities import Game, ListingKind, SourcePage


@runtime_checkable
class UpstreamSource(Protocol):
    """Protocol for upstream game providers.

    Implementations must translate their transport failures into
    ``game_cache.errors.CatalogError`` subclasses and must return
    normalized ``Game`` objects, never raw payloads.

    Example:
        ```python
        source: UpstreamSource = RawgSource.create()
        page = await source.search("zelda", page=1, page_size=20)
        ```
    """

    @property
    def source_id(self) -> str:
        """Return the provider id used as the canonical id prefix.

        Returns:
            Provider id (e.g., "igdb")
        """
        ...

    async def get_game(self, source_id: str) -> Game:
        """Fetch full details for one game.

        Args:
            source_id: The provider's own id (without prefix)

        Returns:
            The normalized game, with ``detailed=True``

        Raises:
            NotFound: If the provider has no such game
            NetworkError: If the provider is unreachable
            ServiceUnavailable: If the provider is erroring
        """
        ...

    async def search(self, query: str, page: int, page_size: int) -> SourcePage:
        """Search games by name.

        Args:
            query: Search text
            page: 1-based page number
            page_size: Number of games per page

        Returns:
            One page of games and the provider's total match count
        """
        ...

    async def list_games(self, kind: ListingKind, limit: int) -> list[Game]:
        """Fetch a curated listing (trending, popular, ...).

        Args:
            kind: Which listing
            limit: Maximum number of games

        Returns:
            Games in provider ranking order (may be empty)
        """
        ...

    async def probe(self) -> bool:
        """Cheap reachability check.

        Returns:
            True if the provider answered successfully
        """
        ...
