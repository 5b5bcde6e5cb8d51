"""
Tests for the game cache API.
"""

import pytest
from conftest import FakeSource, make_game
from fastapi.testclient import TestClient

from game_cache.api.app import create_app
from game_cache.api.dependencies import build_services
from game_cache.errors import NetworkError


@pytest.fixture
def igdb():
    witcher = make_game("igdb", 1942, name="The Witcher 3", detailed=True)
    return FakeSource(
        "igdb",
        games=[witcher],
        search_results={"witcher": [make_game("igdb", 1942, name="The Witcher 3")]},
        listing=[make_game("igdb", n) for n in range(1, 4)],
    )


@pytest.fixture
def rawg():
    return FakeSource(
        "rawg",
        games=[make_game("rawg", 3498, name="Grand Theft Auto V", detailed=True)],
        search_results={
            "witcher": [
                make_game("rawg", 3328, name="The Witcher 3"),
                make_game("rawg", 3329, name="Witcher Adventure Game"),
            ]
        },
        listing=[make_game("rawg", n) for n in range(1, 4)],
    )


@pytest.fixture
def client(igdb, rawg):
    """Create a test client backed by in-memory sources."""
    app = create_app(services_factory=lambda: build_services([igdb, rawg]))
    with TestClient(app) as client:
        yield client


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Game Catalog Cache API"
    assert data["sources"] == ["igdb", "rawg"]


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["sources"] == {"igdb": True, "rawg": True}
    assert data["storage_healthy"] is None


def test_health_degraded(client, rawg):
    """One unreachable provider degrades the service."""
    rawg.reachable = False
    response = client.get("/health")
    assert response.json()["status"] == "degraded"


def test_get_game(client, rawg):
    """Test fetching a game through the entity cache."""
    response = client.get("/games/rawg_3498")
    assert response.status_code == 200
    data = response.json()
    assert data["game"]["id"] == "rawg_3498"
    assert data["game"]["detailed"] is True
    assert data["fresh"] is True
    assert data["provenance"] == "upstream"
    assert data["state"]["status"] == "idle"

    # Second read is served from the cache
    client.get("/games/rawg_3498")
    assert rawg.calls.count(("get_game", "3498")) == 1


def test_force_refetches(client, rawg):
    """Test the force flag bypasses freshness."""
    client.get("/games/rawg_3498")
    response = client.get("/games/rawg_3498", params={"force": True})
    assert response.status_code == 200
    assert response.json()["fetch_count"] == 2
    assert rawg.calls.count(("get_game", "3498")) == 2


def test_get_game_not_found(client):
    """Test unknown ids answer 404."""
    response = client.get("/games/rawg_99")
    assert response.status_code == 404


def test_get_game_malformed_id(client):
    """Test ids without a known provider prefix answer 400."""
    response = client.get("/games/steam_1")
    assert response.status_code == 400


def test_get_game_upstream_down(client, rawg):
    """Test network failures answer 503."""
    rawg.error = NetworkError("rawg is unreachable", source="rawg")
    response = client.get("/games/rawg_3498")
    assert response.status_code == 503


def test_reset_game(client):
    """Test resetting the fetch state after a failure."""
    client.get("/games/rawg_99")
    response = client.post("/games/rawg_99/reset")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "idle"
    assert data["retry_count"] == 0


def test_cache_stats_and_eviction(client):
    """Test stats, single-key eviction and clearing."""
    client.get("/games/rawg_3498")
    client.get("/games/igdb_1942")

    stats = client.get("/cache/stats").json()
    assert stats["count"] == 2
    assert stats["stale_count"] == 0

    response = client.delete("/cache/rawg_3498")
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 1
    assert client.delete("/cache/rawg_3498").status_code == 404

    response = client.delete("/cache")
    assert response.json()["deleted_count"] == 1


def test_search(client):
    """Test combined search across both providers drops the duplicate Witcher 3."""
    response = client.get("/search", params={"q": "witcher"})
    assert response.status_code == 200
    data = response.json()
    assert data["has_searched"] is True
    assert [item["id"] for item in data["items"]] == ["igdb_1942", "rawg_3329"]
    assert data["sources"] == ["igdb", "rawg"]
    assert data["cache_hit"] is False


def test_search_short_query(client, igdb, rawg):
    """Test queries below the minimum length never reach a provider."""
    response = client.get("/search", params={"q": "w"})
    assert response.status_code == 200
    data = response.json()
    assert data["items"] == []
    assert data["has_searched"] is False
    assert igdb.search_calls() == rawg.search_calls() == []


def test_search_pinned_source(client, igdb):
    """Test pinning a provider."""
    response = client.get("/search", params={"q": "witcher", "source": "rawg"})
    assert response.json()["sources"] == ["rawg"]
    assert igdb.search_calls() == []


def test_search_unknown_source(client):
    """Test pinning an unknown provider answers 400."""
    response = client.get("/search", params={"q": "witcher", "source": "steam"})
    assert response.status_code == 400


def test_search_all_sources_down(client, igdb, rawg):
    """Test search answers 503 when every provider fails."""
    igdb.error = NetworkError("igdb is unreachable", source="igdb")
    rawg.error = NetworkError("rawg is unreachable", source="rawg")
    response = client.get("/search", params={"q": "witcher"})
    assert response.status_code == 503


def test_search_invalid_page(client):
    """Test page numbers start at 1."""
    response = client.get("/search", params={"q": "witcher", "page": 0})
    assert response.status_code == 422


def test_search_result_cache(client, rawg):
    """Test repeated searches are served from the result cache."""
    client.get("/search", params={"q": "witcher"})
    response = client.get("/search", params={"q": "Witcher"})
    assert response.json()["cache_hit"] is True
    assert len(rawg.search_calls()) == 1

    stats = client.get("/search/cache/stats").json()
    assert stats["size"] == 1

    response = client.delete("/search/cache")
    assert response.json()["deleted_count"] == 1


def test_suggestions(client, rawg):
    """Test suggestions come from the suggestion strategy."""
    response = client.get("/search/suggestions", params={"q": "witcher", "limit": 1})
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == ["rawg_3328"]


def test_suggestions_never_fail(client, igdb, rawg):
    """Test suggestions resolve to an empty list on upstream failure."""
    igdb.error = NetworkError("igdb is unreachable", source="igdb")
    rawg.error = NetworkError("rawg is unreachable", source="rawg")
    response = client.get("/search/suggestions", params={"q": "witcher"})
    assert response.status_code == 200
    assert response.json() == []


def test_feed(client):
    """Test a listing feed loads on first access."""
    response = client.get("/feeds/trending")
    assert response.status_code == 200
    data = response.json()
    assert data["kind"] == "trending"
    assert [item["id"] for item in data["items"]] == ["igdb_1", "igdb_2", "igdb_3"]
    assert data["sources"] == ["igdb"]
    assert data["source_info"]["label"] == "IGDB"
    assert data["error"] is None


def test_feed_failure_keeps_items(client, igdb, rawg):
    """Test a failed refresh keeps the last good items and sets a notice."""
    client.get("/feeds/popular")
    igdb.error = NetworkError("igdb is unreachable", source="igdb")
    rawg.error = NetworkError("rawg is unreachable", source="rawg")

    data = client.get("/feeds/popular", params={"refresh": True}).json()
    assert len(data["items"]) == 3
    assert data["error_kind"] == "network"
    assert data["notice"] is not None

    igdb.error = rawg.error = None
    data = client.post("/feeds/popular/retry").json()
    assert data["error"] is None
    assert data["notice"] is None


def test_feed_pinned_source(client):
    """Test overriding the feed source and limit."""
    data = client.get("/feeds/recent", params={"source": "rawg", "limit": 2}).json()
    assert [item["id"] for item in data["items"]] == ["rawg_1", "rawg_2"]


def test_unknown_feed_kind(client):
    """Test unknown listing kinds are rejected."""
    response = client.get("/feeds/bestsellers")
    assert response.status_code == 422
