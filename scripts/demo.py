#!/usr/bin/env python3
"""
Demo script for the game catalog cache.

Runs against the live IGDB and RAWG APIs, so RAWG_API_KEY (and optionally
IGDB_CLIENT_ID / IGDB_ACCESS_TOKEN) must be set in the environment or .env.
"""

import asyncio
import time

from game_cache import (
    CatalogGateway,
    ConnectivityProber,
    EntityCache,
    IgdbSource,
    ListingFeed,
    ListingKind,
    RawgSource,
    ResultCache,
    SearchOrchestrator,
    SearchStrategy,
)


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


async def demo_connectivity(prober: ConnectivityProber) -> None:
    print_section("Connectivity")

    status = await prober.probe()
    for source_id, reachable in status.items():
        print(f"  {source_id:<6} {'✓ reachable' if reachable else '✗ unreachable'}")


async def demo_debounced_search(session: SearchOrchestrator) -> None:
    """Type a query one keystroke at a time; only the settled text is searched."""
    print_section("Debounced Search")

    for text in ("z", "ze", "zel", "zeld", "zelda"):
        session.on_input(text)
        print(f"  typed: {text!r}")
        await asyncio.sleep(0.05)
    await session.wait()

    result = session.result
    print(f"\n  Searched once for: {session.last_issued_query!r}")
    print(f"  {result.total_count} matches from {sorted(result.sources)} in {result.elapsed_ms:.0f}ms")
    for game in result.items[:5]:
        print(f"    {game.id:<14} {game.name}")

    if session.notice:
        print(f"\n  ⚠ {session.notice}")

    start = time.perf_counter()
    await session.search("zelda")
    duration = (time.perf_counter() - start) * 1000
    print(f"\n  Repeat search: cache_hit={session.result.cache_hit} in {duration:.1f}ms")


async def demo_strategies(session: SearchOrchestrator) -> None:
    print_section("Search Strategies")

    for strategy in SearchStrategy:
        result = await session.search("portal", strategy=strategy, use_cache=False)
        print(f"  {strategy.value:<12} sources={sorted(result.sources)} items={len(result.items)}")


async def demo_entity_cache(cache: EntityCache, session: SearchOrchestrator) -> None:
    """Fetch details for the top search hit twice; the second read is cached."""
    print_section("Entity Cache")

    if not session.result.items:
        print("  No search results to look up")
        return

    game_id = session.result.items[0].id
    for attempt in ("cold", "warm"):
        start = time.perf_counter()
        game = await cache.fetch(game_id)
        duration = (time.perf_counter() - start) * 1000
        print(f"  {attempt}: {game_id} -> {game.name if game else None} ({duration:.1f}ms)")

    state = cache.state(game_id)
    print(f"  fetch state: {state.status.value}, retries: {state.retry_count}")
    print(f"  stats: {cache.stats()['count']} entries, {cache.stats()['approximate_size_bytes']} bytes")


async def demo_feed(feed: ListingFeed) -> None:
    print_section(f"{feed.kind.value.title()} Feed")

    await feed.load()
    if feed.error:
        print(f"  ✗ {feed.error}")
        return
    info = feed.source_info() or {}
    print(f"  {len(feed.items)} games from {info.get('label', 'nowhere')}")
    for game in feed.items[:5]:
        print(f"    {game.release_date or '????-??-??'}  {game.name}")


async def run() -> None:
    sources = [IgdbSource.create(), RawgSource.create()]
    prober = ConnectivityProber({source.source_id: source for source in sources})
    gateway = CatalogGateway(sources, prober=prober)
    cache = EntityCache(fetcher=gateway.get_game)
    session = SearchOrchestrator(
        gateway,
        entity_cache=cache,
        prober=prober,
        result_cache=ResultCache(),
        debounce_delay=0.3,
    )

    try:
        await demo_connectivity(prober)
        await demo_debounced_search(session)
        await demo_entity_cache(cache, session)
        await demo_strategies(session)
        await demo_feed(ListingFeed(gateway, kind=ListingKind.UPCOMING, limit=5, prober=prober))
    finally:
        await session.close()
        await gateway.close()


def main() -> None:
    """Run all demos."""
    print("\n🎮 Game Catalog Cache Demo")
    print("=" * 70)

    try:
        asyncio.run(run())

        print("\n" + "=" * 70)
        print("✅ Demo completed successfully!")
        print("=" * 70)

    except Exception as e:
        print(f"\n❌ Error: {e}")
        print("\nMake sure RAWG_API_KEY is set, and IGDB_CLIENT_ID / IGDB_ACCESS_TOKEN")
        print("if IGDB should be queried too.")


if __name__ == "__main__":
    main()
