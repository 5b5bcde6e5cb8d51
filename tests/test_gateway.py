"""
Tests for the catalog gateway: strategies, merging, fallback and health.
"""

import httpx
import pytest
from conftest import FakeClock, make_game

from game_cache.entities import ListingKind, SearchRequest, SearchStrategy
from game_cache.errors import NetworkError, NotFound, ServiceUnavailable, ValidationError
from game_cache.repositories import RawgSource
from game_cache.services import CatalogGateway, ConnectivityProber


def games(source, *numbers):
    return [make_game(source, n) for n in numbers]


@pytest.mark.asyncio
async def test_first_strategy_falls_back_on_zero_results(igdb, rawg):
    """igdb_first with IGDB returning nothing answers from RAWG only."""
    rawg.search_results = {"hades": games("rawg", 1, 2)}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("hades", strategy=SearchStrategy.IGDB_FIRST))

    assert result.sources == frozenset({"rawg"})
    assert [game.id for game in result.items] == ["rawg_1", "rawg_2"]
    assert len(igdb.search_calls()) == 1


@pytest.mark.asyncio
async def test_first_strategy_stops_at_first_answer(igdb, rawg):
    igdb.search_results = {"hades": games("igdb", 1)}
    rawg.search_results = {"hades": games("rawg", 1)}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("hades", strategy=SearchStrategy.RAWG_FIRST))

    assert result.sources == frozenset({"rawg"})
    assert igdb.search_calls() == []


@pytest.mark.asyncio
async def test_first_strategy_falls_back_on_error(igdb, rawg):
    igdb.error = ServiceUnavailable("igdb returned HTTP 503", source="igdb")
    rawg.search_results = {"hades": games("rawg", 1)}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("hades", strategy=SearchStrategy.IGDB_FIRST))

    assert result.sources == frozenset({"rawg"})


@pytest.mark.asyncio
async def test_first_strategy_falls_back_on_malformed_payload(igdb):
    def handler(request):
        return httpx.Response(200, json={"count": 1, "results": [{"name": "no id"}]})

    rawg = RawgSource(
        api_key="test-key",
        base_url="https://rawg.test/api",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    igdb.search_results = {"hades": [make_game("igdb", 1, name="Hades")]}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("hades", strategy=SearchStrategy.RAWG_FIRST))

    assert result.sources == frozenset({"igdb"})
    assert [game.id for game in result.items] == ["igdb_1"]
    assert gateway.health()["rawg"] is True
    await gateway.close()


@pytest.mark.asyncio
async def test_first_strategy_with_no_matches_anywhere_is_empty(igdb, rawg):
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("nothing", strategy=SearchStrategy.IGDB_FIRST))

    assert result.items == []
    assert result.total_count == 0
    assert result.sources == frozenset({"igdb", "rawg"})


@pytest.mark.asyncio
async def test_combined_merges_splits_page_and_dedupes(igdb, rawg):
    shared = make_game("igdb", 9, name="Shared")
    igdb.search_results = {
        "mario": [make_game("igdb", 1, name="Super Mario 64"), shared] + games("igdb", 2, 3)
    }
    rawg.search_results = {
        "mario": [shared, make_game("rawg", 1, name="Mario Kart 8"), make_game("rawg", 2)]
    }
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("mario", page_size=4))

    assert igdb.search_calls() == [("search", "mario", 1, 2)]
    assert rawg.search_calls() == [("search", "mario", 1, 2)]
    assert [game.id for game in result.items] == ["igdb_1", "igdb_9", "rawg_1"]
    assert result.total_count == 4
    assert result.sources == frozenset({"igdb", "rawg"})


@pytest.mark.asyncio
async def test_combined_drops_same_game_from_second_provider(igdb, rawg):
    """Both providers know "Hades": only the first-seen record is kept."""
    igdb.search_results = {"hades": [make_game("igdb", 1, name="Hades")]}
    rawg.search_results = {
        "hades": [make_game("rawg", 9, name="HADES "), make_game("rawg", 10, name="Hades II")]
    }
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("hades"))

    assert [(game.id, game.name) for game in result.items] == [
        ("igdb_1", "Hades"),
        ("rawg_10", "Hades II"),
    ]
    assert result.sources == frozenset({"igdb", "rawg"})


@pytest.mark.asyncio
async def test_combined_keeps_same_names_within_one_provider(igdb, rawg):
    igdb.search_results = {"doom": [make_game("igdb", 1, name="Doom"), make_game("igdb", 2, name="Doom")]}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("doom"))

    assert [game.id for game in result.items] == ["igdb_1", "igdb_2"]
    assert result.sources == frozenset({"igdb"})


@pytest.mark.asyncio
async def test_combined_survives_one_failing_source(igdb, rawg):
    igdb.error = NetworkError("igdb is unreachable", source="igdb")
    rawg.search_results = {"mario": games("rawg", 1)}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("mario"))

    assert result.sources == frozenset({"rawg"})
    assert [game.id for game in result.items] == ["rawg_1"]


@pytest.mark.asyncio
async def test_all_sources_unreachable_raises_network_error(igdb, rawg):
    igdb.error = NetworkError("down", source="igdb")
    rawg.error = NetworkError("down", source="rawg")
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    with pytest.raises(NetworkError):
        await gateway.search(SearchRequest("mario"))


@pytest.mark.asyncio
async def test_mixed_failures_raise_service_unavailable(igdb, rawg):
    igdb.error = NetworkError("down", source="igdb")
    rawg.error = ServiceUnavailable("rate limited", source="rawg")
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    with pytest.raises(ServiceUnavailable):
        await gateway.search(SearchRequest("mario", strategy=SearchStrategy.RAWG_FIRST))


@pytest.mark.asyncio
async def test_pinned_source_is_queried_alone(igdb, rawg):
    rawg.search_results = {"mario": games("rawg", 1)}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    result = await gateway.search(SearchRequest("mario", source="rawg"))

    assert result.sources == frozenset({"rawg"})
    assert igdb.calls == []


@pytest.mark.asyncio
async def test_unknown_pinned_source_is_a_validation_error(igdb):
    gateway = CatalogGateway([igdb], timeout=1)

    with pytest.raises(ValidationError):
        await gateway.search(SearchRequest("mario", source="steam"))


@pytest.mark.asyncio
async def test_slow_source_times_out_as_network_error(igdb):
    igdb.delay = 1.0
    gateway = CatalogGateway([igdb], timeout=0.01)

    with pytest.raises(NetworkError):
        await gateway.search(SearchRequest("mario"))


@pytest.mark.asyncio
async def test_get_game_routes_by_prefix(igdb, rawg):
    rawg.games = {"3498": make_game("rawg", 3498, detailed=True)}
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    game = await gateway.get_game("rawg_3498")

    assert game.id == "rawg_3498"
    assert rawg.calls == [("get_game", "3498")]
    assert igdb.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("game_id", ["3498", "steam_1", "rawg_"])
async def test_get_game_rejects_malformed_ids(igdb, rawg, game_id):
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    with pytest.raises(ValidationError):
        await gateway.get_game(game_id)


@pytest.mark.asyncio
async def test_get_game_propagates_not_found(rawg):
    gateway = CatalogGateway([rawg], timeout=1)

    with pytest.raises(NotFound):
        await gateway.get_game("rawg_1")


@pytest.mark.asyncio
async def test_repeatedly_failing_source_is_tried_last(igdb, rawg):
    clock = FakeClock()
    igdb.error = ServiceUnavailable("igdb returned HTTP 500", source="igdb")
    rawg.search_results = {"mario": games("rawg", 1)}
    gateway = CatalogGateway([igdb, rawg], timeout=1, clock=clock)
    request = SearchRequest("mario", strategy=SearchStrategy.IGDB_FIRST)

    for _ in range(3):
        await gateway.search(request)
    assert len(igdb.search_calls()) == 3
    assert gateway.health() == {"igdb": False, "rawg": True}

    await gateway.search(request)
    assert len(igdb.search_calls()) == 3

    clock.advance(5 * 60)
    assert gateway.health()["igdb"] is True


@pytest.mark.asyncio
async def test_unreachable_sources_are_skipped(igdb, rawg):
    igdb.reachable = False
    rawg.search_results = {"mario": games("rawg", 1)}
    prober = ConnectivityProber({"igdb": igdb, "rawg": rawg}, ttl=60)
    gateway = CatalogGateway([igdb, rawg], prober=prober, timeout=1)

    result = await gateway.search(SearchRequest("mario"))

    assert result.sources == frozenset({"rawg"})
    assert igdb.search_calls() == []


@pytest.mark.asyncio
async def test_all_unreachable_still_tries_every_source(igdb, rawg):
    igdb.reachable = rawg.reachable = False
    rawg.search_results = {"mario": games("rawg", 1)}
    prober = ConnectivityProber({"igdb": igdb, "rawg": rawg}, ttl=60)
    gateway = CatalogGateway([igdb, rawg], prober=prober, timeout=1)

    result = await gateway.search(SearchRequest("mario"))

    assert result.sources == frozenset({"rawg"})
    assert len(igdb.search_calls()) == 1


@pytest.mark.asyncio
async def test_listing_falls_back_on_error(igdb, rawg):
    igdb.error = NetworkError("igdb is unreachable", source="igdb")
    rawg.listing = games("rawg", 1, 2, 3)
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    listing = await gateway.list_games(ListingKind.TRENDING, limit=2)

    assert [game.id for game in listing] == ["rawg_1", "rawg_2"]


@pytest.mark.asyncio
async def test_empty_listing_is_an_answer(igdb, rawg):
    rawg.listing = games("rawg", 1)
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    listing = await gateway.list_games(ListingKind.UPCOMING, limit=5)

    assert listing == []
    assert rawg.calls == []


@pytest.mark.asyncio
async def test_listing_raises_when_every_source_fails(igdb, rawg):
    igdb.error = ServiceUnavailable("igdb returned HTTP 429", source="igdb")
    rawg.error = ServiceUnavailable("rawg returned HTTP 429", source="rawg")
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    with pytest.raises(ServiceUnavailable):
        await gateway.list_games(ListingKind.POPULAR, limit=5)


@pytest.mark.asyncio
async def test_close_closes_every_source(igdb, rawg):
    gateway = CatalogGateway([igdb, rawg], timeout=1)

    await gateway.close()

    assert igdb.closed and rawg.closed


def test_at_least_one_source_is_required():
    with pytest.raises(ValueError):
        CatalogGateway([])
