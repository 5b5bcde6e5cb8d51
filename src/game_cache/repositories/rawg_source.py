"""RAWG implementation of UpstreamSource.

Talks to the RAWG REST API (https://api.rawg.io/docs). RAWG ratings are
on a 0-5 scale with an optional Metacritic score; both are mapped onto
the canonical 0-100 rating.
"""

import logging
from datetime import date, timedelta
from typing import Any

import httpx

from game_cache.config import settings
from game_cache.entities import Game, ListingKind, SourcePage
from game_cache.errors import CatalogError, ServiceUnavailable

from ._http import decode_json, new_client, send

logger = logging.getLogger(__name__)

SOURCE_ID = "rawg"


def normalize_rawg(raw: dict[str, Any], detailed: bool = False) -> Game:
    """Map a RAWG game payload onto ``Game``.

    Args:
        raw: One object from ``/games`` or ``/games/{id}``
        detailed: Whether the payload came from the detail endpoint

    Returns:
        The canonical game
    """
    rating: float | None = None
    if raw.get("metacritic"):
        rating = float(raw["metacritic"])
    elif raw.get("rating"):
        rating = round(float(raw["rating"]) * 20, 1)

    platforms = tuple(
        entry["platform"]["name"]
        for entry in raw.get("platforms") or []
        if entry.get("platform", {}).get("name")
    )

    return Game(
        id=f"{SOURCE_ID}_{raw['id']}",
        name=raw.get("name") or "",
        source=SOURCE_ID,
        source_id=str(raw["id"]),
        slug=raw.get("slug"),
        summary=raw.get("description_raw") or None,
        cover_url=raw.get("background_image"),
        rating=rating,
        release_date=raw.get("released"),
        genres=tuple(g["name"] for g in raw.get("genres") or [] if g.get("name")),
        platforms=platforms,
        detailed=detailed,
    )


def _normalize_all(rows: list[Any], detailed: bool = False) -> list[Game]:
    try:
        return [normalize_rawg(raw, detailed=detailed) for raw in rows]
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise ServiceUnavailable(
            "RAWG returned an unexpected payload",
            source=SOURCE_ID,
            details={"error": repr(e)},
        ) from e


def _results(data: Any) -> list[Any]:
    if not isinstance(data, dict):
        raise ServiceUnavailable("RAWG returned an unexpected payload", source=SOURCE_ID)
    return data.get("results") or []


class RawgSource:
    """RAWG client satisfying the UpstreamSource protocol.

    This class satisfies the UpstreamSource protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        source = RawgSource.create(api_key="...")
        page = await source.search("portal", page=1, page_size=10)
        print(page.total)
        ```
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the RAWG client.

        Args:
            api_key: RAWG API key. Defaults to settings.rawg_api_key.
            base_url: API base URL. Defaults to settings.rawg_base_url.
            timeout: Request timeout in seconds. Defaults to settings.upstream_timeout.
            client: Pre-built httpx client (tests inject a MockTransport here).
        """
        self._api_key = api_key if api_key is not None else settings.rawg_api_key
        self._base_url = (base_url or settings.rawg_base_url).rstrip("/")
        self._timeout = timeout or settings.upstream_timeout
        self._client = client

    @classmethod
    def create(
        cls,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> "RawgSource":
        """Factory method to create RawgSource with defaults from settings."""
        return cls(api_key=api_key, base_url=base_url)

    @property
    def source_id(self) -> str:
        return SOURCE_ID

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = new_client(self._timeout)
        return self._client

    def _params(self, **params: Any) -> dict[str, Any]:
        if self._api_key:
            params["key"] = self._api_key
        return params

    async def _get(self, path: str, **params: Any) -> Any:
        response = await send(
            self.client,
            "GET",
            f"{self._base_url}{path}",
            SOURCE_ID,
            params=self._params(**params),
        )
        return decode_json(response, SOURCE_ID)

    async def get_game(self, source_id: str) -> Game:
        data = await self._get(f"/games/{source_id}")
        (game,) = _normalize_all([data], detailed=True)
        return game

    async def search(self, query: str, page: int, page_size: int) -> SourcePage:
        data = await self._get(
            "/games",
            search=query,
            page=page,
            page_size=page_size,
            search_precise="true",
        )
        items = _normalize_all(_results(data))
        return SourcePage(items=items, total=int(data.get("count") or 0))

    async def list_games(self, kind: ListingKind, limit: int) -> list[Game]:
        today = date.today()
        if kind is ListingKind.TRENDING:
            params = {"dates": f"{today - timedelta(days=90)},{today}", "ordering": "-added"}
        elif kind is ListingKind.POPULAR:
            params = {"ordering": "-added", "metacritic": "70,100"}
        elif kind is ListingKind.UPCOMING:
            params = {"dates": f"{today + timedelta(days=1)},{today + timedelta(days=365)}", "ordering": "-added"}
        else:
            params = {"dates": f"{today - timedelta(days=90)},{today}", "ordering": "-released"}

        data = await self._get("/games", page=1, page_size=limit, **params)
        return _normalize_all(_results(data))

    async def probe(self) -> bool:
        try:
            await self._get("/games", page_size=1)
            return True
        except CatalogError as e:
            logger.debug("RAWG probe failed: %s", e)
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
