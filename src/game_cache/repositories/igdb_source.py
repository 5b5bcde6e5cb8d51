"""IGDB implementation of UpstreamSource.

Uses the IGDB v4 API, which takes Apicalypse query bodies over POST and
authenticates with a Twitch client id plus an app access token. Obtaining
the token is outside this package; it is read from settings.

Key features:
- Cover URLs are upgraded from thumbnails to ``t_cover_big``
- Release dates are converted from Unix timestamps to ISO dates
- Search totals come from the ``X-Count`` response header when present
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from game_cache.config import settings
from game_cache.entities import Game, ListingKind, SourcePage
from game_cache.errors import CatalogError, NotFound, ServiceUnavailable, ValidationError

from ._http import decode_json, new_client, send

logger = logging.getLogger(__name__)

SOURCE_ID = "igdb"

FIELDS = (
    "name,slug,summary,cover.url,total_rating,first_release_date,"
    "genres.name,platforms.name"
)

DAY = 24 * 60 * 60


def _cover_url(cover: dict[str, Any] | None) -> str | None:
    if not cover or not cover.get("url"):
        return None
    url = cover["url"].replace("t_thumb", "t_cover_big")
    return f"https:{url}" if url.startswith("//") else url


def normalize_igdb(raw: dict[str, Any], detailed: bool = False) -> Game:
    """Map an IGDB game object onto ``Game``.

    Args:
        raw: One element of the ``/games`` response array
        detailed: Whether the object was requested as a detail lookup

    Returns:
        The canonical game
    """
    release_date = None
    if raw.get("first_release_date"):
        released = datetime.fromtimestamp(raw["first_release_date"], tz=timezone.utc)
        release_date = released.date().isoformat()

    rating = raw.get("total_rating")

    return Game(
        id=f"{SOURCE_ID}_{raw['id']}",
        name=raw.get("name") or "",
        source=SOURCE_ID,
        source_id=str(raw["id"]),
        slug=raw.get("slug"),
        summary=raw.get("summary"),
        cover_url=_cover_url(raw.get("cover")),
        rating=round(float(rating), 1) if rating is not None else None,
        release_date=release_date,
        genres=tuple(g["name"] for g in raw.get("genres") or [] if g.get("name")),
        platforms=tuple(p["name"] for p in raw.get("platforms") or [] if p.get("name")),
        detailed=detailed,
    )


def _normalize_all(rows: list[Any], detailed: bool = False) -> list[Game]:
    try:
        return [normalize_igdb(row, detailed=detailed) for row in rows]
    except (KeyError, TypeError, AttributeError, ValueError, OverflowError, OSError) as e:
        raise ServiceUnavailable(
            "IGDB returned an unexpected payload",
            source=SOURCE_ID,
            details={"error": repr(e)},
        ) from e


def _quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


class IgdbSource:
    """IGDB client satisfying the UpstreamSource protocol.

    Example:
        ```python
        source = IgdbSource.create(client_id="...", access_token="...")
        game = await source.get_game("1942")
        print(game.name)  # The Witcher 3: Wild Hunt
        ```
    """

    def __init__(
        self,
        client_id: str | None = None,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        clock=time.time,
    ) -> None:
        """Initialize the IGDB client.

        Args:
            client_id: Twitch client id. Defaults to settings.igdb_client_id.
            access_token: App access token. Defaults to settings.igdb_access_token.
            base_url: API base URL. Defaults to settings.igdb_base_url.
            timeout: Request timeout in seconds. Defaults to settings.upstream_timeout.
            client: Pre-built httpx client (tests inject a MockTransport here).
            clock: Time source used for date-bounded listings.
        """
        self._client_id = client_id if client_id is not None else settings.igdb_client_id
        self._access_token = access_token if access_token is not None else settings.igdb_access_token
        self._base_url = (base_url or settings.igdb_base_url).rstrip("/")
        self._timeout = timeout or settings.upstream_timeout
        self._client = client
        self._clock = clock

    @classmethod
    def create(
        cls,
        client_id: str | None = None,
        access_token: str | None = None,
    ) -> "IgdbSource":
        """Factory method to create IgdbSource with defaults from settings."""
        return cls(client_id=client_id, access_token=access_token)

    @property
    def source_id(self) -> str:
        return SOURCE_ID

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = new_client(self._timeout)
        return self._client

    async def _query(self, body: str, endpoint: str = "games") -> httpx.Response:
        headers = {
            "Client-ID": self._client_id,
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }
        return await send(
            self.client,
            "POST",
            f"{self._base_url}/{endpoint}",
            SOURCE_ID,
            content=body,
            headers=headers,
        )

    async def _games(self, body: str) -> tuple[list[dict[str, Any]], httpx.Response]:
        response = await self._query(body)
        data = decode_json(response, SOURCE_ID)
        if not isinstance(data, list):
            raise ServiceUnavailable("IGDB returned an unexpected payload", source=SOURCE_ID)
        return data, response

    async def get_game(self, source_id: str) -> Game:
        if not source_id.isdigit():
            raise ValidationError(f"Invalid IGDB id: {source_id!r}", source=SOURCE_ID)

        rows, _ = await self._games(f"fields {FIELDS}; where id = {source_id};")
        if not rows:
            raise NotFound(f"IGDB game {source_id} not found", source=SOURCE_ID)
        (game,) = _normalize_all(rows[:1], detailed=True)
        return game

    async def search(self, query: str, page: int, page_size: int) -> SourcePage:
        offset = (page - 1) * page_size
        rows, response = await self._games(
            f'search "{_quote(query)}"; fields {FIELDS}; limit {page_size}; offset {offset};'
        )
        items = _normalize_all(rows)

        header = response.headers.get("x-count")
        if header and header.isdigit():
            total = int(header)
        else:
            # No count header: a full page means there is at least one more.
            total = offset + len(items) + (1 if len(items) == page_size else 0)
        return SourcePage(items=items, total=total)

    async def list_games(self, kind: ListingKind, limit: int) -> list[Game]:
        now = int(self._clock())
        if kind is ListingKind.TRENDING:
            clause = f"where first_release_date > {now - 180 * DAY} & hypes > 0; sort hypes desc;"
        elif kind is ListingKind.POPULAR:
            clause = "where total_rating_count > 50; sort total_rating_count desc;"
        elif kind is ListingKind.UPCOMING:
            clause = f"where first_release_date > {now}; sort first_release_date asc;"
        else:
            clause = (
                f"where first_release_date < {now} & first_release_date > {now - 90 * DAY};"
                " sort first_release_date desc;"
            )

        rows, _ = await self._games(f"fields {FIELDS}; {clause} limit {limit};")
        return _normalize_all(rows)

    async def probe(self) -> bool:
        try:
            await self._query("fields id; limit 1;")
            return True
        except CatalogError as e:
            logger.debug("IGDB probe failed: %s", e)
            return False

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
