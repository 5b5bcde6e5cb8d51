"""Catalog gateway: fan-out over upstream sources.

This service routes entity lookups to the provider named in the id
prefix, runs searches under a selectable strategy, merges multi-source
answers and serves curated listings with provider fallback. It does not
cache; the entity cache and the search orchestrator sit on top of it.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Mapping, TypeVar

from rapidfuzz.distance import Levenshtein

from game_cache.config import settings
from game_cache.entities import (
    AUTO_SOURCE,
    Game,
    ListingKind,
    SearchRequest,
    SearchResult,
    SearchStrategy,
    SourcePage,
)
from game_cache.errors import CatalogError, NetworkError, ServiceUnavailable, ValidationError
from game_cache.protocols import UpstreamSource

from .connectivity import ConnectivityProber

logger = logging.getLogger(__name__)

R = TypeVar("R")

UNHEALTHY_AFTER_FAILURES = 3
UNHEALTHY_WINDOW = 5 * 60

# Names more similar than this across providers are the same game.
DUPLICATE_NAME_SIMILARITY = 0.85


def _normalize_name(name: str) -> str:
    return " ".join(name.split()).lower()


def _same_game_elsewhere(name: str, source: str, kept: list[tuple[str, str]]) -> bool:
    if not name:
        return False
    return any(
        other_source != source
        and Levenshtein.normalized_similarity(name, other) > DUPLICATE_NAME_SIMILARITY
        for other_source, other in kept
    )


@dataclass
class SourceHealth:
    """Rolling failure bookkeeping for one provider."""

    failures: int = 0
    last_failure_at: float | None = None

    def is_healthy(self, now: float) -> bool:
        if self.failures < UNHEALTHY_AFTER_FAILURES or self.last_failure_at is None:
            return True
        return now - self.last_failure_at >= UNHEALTHY_WINDOW


class CatalogGateway:
    """Strategy-driven access to every configured upstream source.

    This service depends on the UpstreamSource PROTOCOL, so any provider
    (or a test fake) can be plugged in. Sources are kept in registration
    order, which is also the merge order for combined searches and the
    preference order for ``auto`` listings.

    Example:
        ```python
        gateway = CatalogGateway([IgdbSource.create(), RawgSource.create()])
        result = await gateway.search(SearchRequest("hades", strategy=SearchStrategy.RAWG_FIRST))
        print(result.sources)  # frozenset({'rawg'})
        ```
    """

    def __init__(
        self,
        sources: Iterable[UpstreamSource],
        prober: ConnectivityProber | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the gateway.

        Args:
            sources: Upstream providers, in preference order.
            prober: Optional prober used to skip unreachable sources.
            timeout: Per-call upstream timeout in seconds. Defaults to settings.
            clock: Monotonic time source for health tracking.
        """
        self._sources: dict[str, UpstreamSource] = {s.source_id: s for s in sources}
        if not self._sources:
            raise ValueError("At least one upstream source is required")
        self._prober = prober
        self._timeout = timeout or settings.upstream_timeout
        self._clock = clock
        self._health: dict[str, SourceHealth] = {sid: SourceHealth() for sid in self._sources}

    @classmethod
    def create(cls, prober: ConnectivityProber | None = None) -> "CatalogGateway":
        """Factory method wiring the IGDB and RAWG clients from settings."""
        from game_cache.repositories import IgdbSource, RawgSource

        return cls(sources=[IgdbSource.create(), RawgSource.create()], prober=prober)

    @property
    def sources(self) -> Mapping[str, UpstreamSource]:
        return dict(self._sources)

    @property
    def prober(self) -> ConnectivityProber | None:
        return self._prober

    def health(self) -> dict[str, bool]:
        now = self._clock()
        return {sid: h.is_healthy(now) for sid, h in self._health.items()}

    def _source(self, source_id: str) -> UpstreamSource:
        source = self._sources.get(source_id)
        if source is None:
            raise ValidationError(f"Unknown source {source_id!r}", source=source_id)
        return source

    async def _order(self, preferred: str | None = None) -> list[str]:
        """Source ids to try, best candidate first.

        The preferred source leads, unhealthy sources move to the back and
        sources the prober reports as unreachable are skipped (unless every
        source looks unreachable, in which case all are tried anyway).
        """
        order = list(self._sources)
        if preferred in self._sources:
            order.remove(preferred)
            order.insert(0, preferred)

        now = self._clock()
        order.sort(key=lambda sid: not self._health[sid].is_healthy(now))

        if self._prober is not None:
            status = await self._prober.probe()
            reachable = [sid for sid in order if status.get(sid, True)]
            if reachable:
                order = reachable
        return order

    async def _call(self, source_id: str, call: Awaitable[R]) -> R:
        """Await one upstream call with the timeout and health bookkeeping."""
        health = self._health[source_id]
        try:
            result = await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            health.failures += 1
            health.last_failure_at = self._clock()
            raise NetworkError(
                f"{source_id} did not answer within {self._timeout:.1f}s", source=source_id
            ) from e
        except CatalogError:
            health.failures += 1
            health.last_failure_at = self._clock()
            raise

        health.failures = max(0, health.failures - 1)
        return result

    @staticmethod
    def _all_failed(errors: list[CatalogError], what: str) -> CatalogError:
        if errors and all(isinstance(e, NetworkError) for e in errors):
            return NetworkError(f"All {what} sources are unreachable")
        if len(errors) == 1:
            return errors[0]
        return ServiceUnavailable(f"All {what} sources are unavailable")

    async def get_game(self, game_id: str) -> Game:
        """Fetch full details for a canonical id such as ``rawg_3498``.

        Raises:
            ValidationError: If the id has no known provider prefix
            CatalogError: Whatever the provider raised
        """
        source_id, sep, native_id = game_id.partition("_")
        if not sep or not native_id:
            raise ValidationError(f"Game id {game_id!r} has no source prefix")
        source = self._source(source_id)
        return await self._call(source_id, source.get_game(native_id))

    async def search(self, request: SearchRequest) -> SearchResult:
        """Run a search under the request's strategy and source preference.

        A pinned source is queried alone. Otherwise ``COMBINED`` fans out to
        all sources, and the ``*_FIRST`` strategies fall back source by
        source on errors or empty answers.

        Raises:
            CatalogError: If every candidate source failed
        """
        if request.source != AUTO_SOURCE:
            self._source(request.source)
            return await self._search_in_order([request.source], request)

        order = await self._order(request.strategy.primary)
        if request.strategy is SearchStrategy.COMBINED and len(order) > 1:
            return await self._search_combined(order, request)
        return await self._search_in_order(order, request)

    async def _search_in_order(self, order: list[str], request: SearchRequest) -> SearchResult:
        errors: list[CatalogError] = []
        answered: list[str] = []

        for source_id in order:
            source = self._sources[source_id]
            try:
                page = await self._call(
                    source_id, source.search(request.query, request.page, request.page_size)
                )
            except CatalogError as e:
                logger.warning("Search on %s failed, trying next source: %s", source_id, e)
                errors.append(e)
                continue

            if page.items:
                return self._build_result(request, [(source_id, page)])
            logger.info("%s returned no results for %r", source_id, request.query)
            answered.append(source_id)

        if answered:
            return SearchResult(
                items=[],
                total_count=0,
                page=request.page,
                page_size=request.page_size,
                sources=frozenset(answered),
            )
        raise self._all_failed(errors, "search")

    async def _search_combined(self, order: list[str], request: SearchRequest) -> SearchResult:
        per_source = math.ceil(request.page_size / len(order))

        async def one(source_id: str) -> SourcePage | CatalogError:
            source = self._sources[source_id]
            try:
                return await self._call(
                    source_id, source.search(request.query, request.page, per_source)
                )
            except CatalogError as e:
                logger.warning("Search on %s failed in combined mode: %s", source_id, e)
                return e

        outcomes = await asyncio.gather(*(one(sid) for sid in order))

        pages = [(sid, out) for sid, out in zip(order, outcomes) if isinstance(out, SourcePage)]
        if not pages:
            raise self._all_failed([out for out in outcomes if isinstance(out, CatalogError)], "search")
        return self._build_result(request, pages)

    @staticmethod
    def _build_result(request: SearchRequest, pages: list[tuple[str, SourcePage]]) -> SearchResult:
        """Merge pages in order, dropping duplicates (first one wins).

        A game is a duplicate when its id was already kept, or when a game
        kept from another provider has a near-identical name.
        """
        items: list[Game] = []
        seen: set[str] = set()
        kept_names: list[tuple[str, str]] = []
        contributors: set[str] = set()

        for source_id, page in pages:
            for game in page.items:
                name = _normalize_name(game.name)
                if game.id in seen or _same_game_elsewhere(name, game.source, kept_names):
                    logger.debug("Dropping duplicate %s (%r) from %s", game.id, game.name, source_id)
                    continue
                seen.add(game.id)
                kept_names.append((game.source, name))
                items.append(game)
                contributors.add(source_id)

        return SearchResult(
            items=items[: request.page_size],
            total_count=max(page.total for _, page in pages),
            page=request.page,
            page_size=request.page_size,
            sources=frozenset(contributors or {sid for sid, _ in pages}),
        )

    async def list_games(
        self,
        kind: ListingKind,
        limit: int,
        source: str = AUTO_SOURCE,
    ) -> list[Game]:
        """Fetch a curated listing, falling back to other sources on error.

        An empty listing is a valid answer and does not trigger fallback.

        Raises:
            CatalogError: If every candidate source failed
        """
        if source != AUTO_SOURCE:
            self._source(source)
            order = [source]
        else:
            order = await self._order()

        errors: list[CatalogError] = []
        for source_id in order:
            try:
                return await self._call(source_id, self._sources[source_id].list_games(kind, limit))
            except CatalogError as e:
                logger.warning("%s listing on %s failed: %s", kind.value, source_id, e)
                errors.append(e)
        raise self._all_failed(errors, f"{kind.value} listing")

    async def close(self) -> None:
        """Close every source that holds network resources."""
        for source in self._sources.values():
            close = getattr(source, "close", None)
            if close is not None:
                await close()
