"""Shared fakes for the game cache tests."""

import asyncio

import pytest

from game_cache.entities import Game, ListingKind, SourcePage
from game_cache.errors import CatalogError, NotFound


def make_game(source: str, number: int, name: str | None = None, detailed: bool = False) -> Game:
    return Game(
        id=f"{source}_{number}",
        name=name or f"Game {number}",
        source=source,
        source_id=str(number),
        detailed=detailed,
    )


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource:
    """In-memory UpstreamSource recording every call."""

    def __init__(
        self,
        source_id: str,
        games: list[Game] | None = None,
        search_results: dict[str, list[Game]] | None = None,
        listing: list[Game] | None = None,
        reachable: bool = True,
    ) -> None:
        self._source_id = source_id
        self.games = {game.source_id: game for game in games or []}
        self.search_results = search_results or {}
        self.listing = listing or []
        self.reachable = reachable
        self.error: CatalogError | None = None
        self.search_delays: dict[str, float] = {}
        self.delay = 0.0
        self.calls: list[tuple] = []
        self.closed = False

    @property
    def source_id(self) -> str:
        return self._source_id

    async def _respond(self, delay: float = 0.0) -> None:
        if delay or self.delay:
            await asyncio.sleep(delay or self.delay)
        if self.error is not None:
            raise self.error

    def search_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] == "search"]

    async def get_game(self, source_id: str) -> Game:
        self.calls.append(("get_game", source_id))
        await self._respond()
        if source_id not in self.games:
            raise NotFound(f"{self._source_id} game {source_id} not found", source=self._source_id)
        return self.games[source_id]

    async def search(self, query: str, page: int, page_size: int) -> SourcePage:
        self.calls.append(("search", query, page, page_size))
        await self._respond(self.search_delays.get(query, 0.0))
        matches = self.search_results.get(query.lower(), [])
        start = (page - 1) * page_size
        return SourcePage(items=matches[start : start + page_size], total=len(matches))

    async def list_games(self, kind: ListingKind, limit: int) -> list[Game]:
        self.calls.append(("list_games", kind, limit))
        await self._respond()
        return self.listing[:limit]

    async def probe(self) -> bool:
        self.calls.append(("probe",))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.reachable

    async def close(self) -> None:
        self.closed = True


class MemoryStorage:
    """CacheStorage holding the blob in memory."""

    def __init__(self, blob: str | None = None) -> None:
        self.blob = blob
        self.saves = 0
        self.fail = False

    def load(self) -> str | None:
        if self.fail:
            raise OSError("storage unavailable")
        return self.blob

    def save(self, blob: str) -> None:
        if self.fail:
            raise OSError("storage unavailable")
        self.blob = blob
        self.saves += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def igdb():
    return FakeSource("igdb")


@pytest.fixture
def rawg():
    return FakeSource("rawg")
