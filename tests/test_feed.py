"""
Tests for the curated listing feed.
"""

import asyncio

import pytest
from conftest import FakeClock, make_game

from game_cache.entities import ListingKind
from game_cache.errors import ErrorKind, NetworkError, describe
from game_cache.services import CatalogGateway, ConnectivityProber, ListingFeed


def build_feed(*sources, **options):
    gateway = CatalogGateway(list(sources), timeout=1)
    options.setdefault("limit", 5)
    return ListingFeed(gateway, **options)


@pytest.mark.asyncio
async def test_load_replaces_items_and_records_provenance(igdb, rawg):
    clock = FakeClock()
    igdb.listing = [make_game("igdb", 1), make_game("igdb", 2)]
    feed = build_feed(igdb, rawg, clock=clock)

    items = await feed.load()

    assert [game.id for game in items] == ["igdb_1", "igdb_2"]
    assert feed.has_data
    assert feed.error is None
    assert feed.last_updated == clock.now
    assert feed.sources == ["igdb"]
    assert feed.source_info() == {"primary": "igdb", "label": "IGDB", "count": 1, "is_hybrid": False}
    assert igdb.calls == [("list_games", ListingKind.TRENDING, 5)]


@pytest.mark.asyncio
async def test_mixed_items_are_reported_as_hybrid(rawg):
    rawg.listing = [make_game("rawg", 1), make_game("igdb", 4), make_game("rawg", 2)]
    feed = build_feed(rawg)

    await feed.load()

    assert feed.sources == ["rawg", "igdb"]
    assert feed.source_info()["is_hybrid"] is True
    assert feed.source_info()["count"] == 2


@pytest.mark.asyncio
async def test_failure_keeps_last_good_items(rawg):
    rawg.listing = [make_game("rawg", 1)]
    feed = build_feed(rawg)
    await feed.load()
    updated = feed.last_updated

    rawg.error = NetworkError("rawg is unreachable", source="rawg")
    items = await feed.load()

    assert [game.id for game in items] == ["rawg_1"]
    assert "unreachable" in feed.error
    assert feed.error_kind is ErrorKind.NETWORK
    assert feed.notice == describe(ErrorKind.NETWORK)
    assert feed.last_updated == updated
    assert not feed.is_loading


@pytest.mark.asyncio
async def test_retry_clears_error(rawg):
    rawg.error = NetworkError("rawg is unreachable", source="rawg")
    feed = build_feed(rawg)
    await feed.load()
    assert not feed.has_data

    rawg.error = None
    rawg.listing = [make_game("rawg", 1)]
    await feed.retry()

    assert feed.error is None
    assert feed.notice is None
    assert feed.has_data


@pytest.mark.asyncio
async def test_empty_listing_is_not_an_error(igdb):
    feed = build_feed(igdb, kind=ListingKind.UPCOMING)

    items = await feed.load()

    assert items == []
    assert feed.error is None
    assert feed.last_updated is not None
    assert feed.source_info() is None


@pytest.mark.asyncio
async def test_unknown_pinned_source_has_no_notice(igdb):
    feed = build_feed(igdb)

    await feed.load(source="steam")

    assert feed.error_kind is ErrorKind.VALIDATION
    assert feed.notice is None
    assert feed.source == "steam"
    assert igdb.calls == []


@pytest.mark.asyncio
async def test_load_overrides_stick(igdb, rawg):
    rawg.listing = [make_game("rawg", n) for n in range(1, 10)]
    feed = build_feed(igdb, rawg)

    await feed.load(limit=3, source="rawg")
    await feed.load()

    assert feed.limit == 3
    assert rawg.calls == [("list_games", ListingKind.TRENDING, 3)] * 2
    assert igdb.calls == []


@pytest.mark.asyncio
async def test_poll_delay_backs_off_while_failing(rawg):
    rawg.error = NetworkError("rawg is unreachable", source="rawg")
    feed = build_feed(rawg, poll_interval=10, max_backoff=8)
    assert feed.next_delay() == 10

    delays = []
    for _ in range(5):
        await feed.load()
        delays.append(feed.next_delay())

    assert delays == [20, 40, 80, 80, 80]

    rawg.error = None
    await feed.load()
    assert feed.next_delay() == 10


@pytest.mark.asyncio
async def test_polling_starts_and_stops(rawg):
    rawg.listing = [make_game("rawg", 1)]
    feed = build_feed(rawg, poll_interval=0.01)

    feed.start()
    feed.start()
    await asyncio.sleep(0.035)
    assert feed.polling
    await feed.close()

    assert not feed.polling
    assert feed.has_data
    loads = len(rawg.calls)
    assert loads >= 2
    await asyncio.sleep(0.02)
    assert len(rawg.calls) == loads


@pytest.mark.asyncio
async def test_connectivity_flags_follow_prober(igdb, rawg):
    igdb.reachable = False
    rawg.listing = [make_game("rawg", 1)]
    prober = ConnectivityProber({"igdb": igdb, "rawg": rawg}, ttl=60)
    feed = ListingFeed(CatalogGateway([igdb, rawg], prober=prober, timeout=1), prober=prober)

    await feed.load()

    assert feed.connectivity == {"igdb": False, "rawg": True}
    assert feed.is_partially_available
    assert not feed.is_offline
