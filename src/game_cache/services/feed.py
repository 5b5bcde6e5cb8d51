"""Curated listing feed (trending, popular, upcoming, recent)."""

import asyncio
import logging
import time
from typing import Any, Callable

from game_cache.config import settings
from game_cache.entities import AUTO_SOURCE, Game, ListingKind
from game_cache.errors import CatalogError, ErrorKind, classify, describe, is_retryable

from .catalog_gateway import CatalogGateway
from .connectivity import ConnectivityProber

logger = logging.getLogger(__name__)

SOURCE_LABELS = {"igdb": "IGDB", "rawg": "RAWG", AUTO_SOURCE: "Auto"}


class ListingFeed:
    """Keeps the last good listing of one kind and refreshes it on demand.

    A failed load never clears ``items``; it sets ``error`` instead. An
    empty successful load is a normal state and clears the error.
    ``notice`` is only set for network or service failures.

    Optional polling reloads every ``poll_interval`` seconds, backing off
    exponentially (``2 ** failures``, capped at ``max_backoff``) while
    loads keep failing.
    """

    def __init__(
        self,
        gateway: CatalogGateway,
        kind: ListingKind = ListingKind.TRENDING,
        limit: int | None = None,
        source: str = AUTO_SOURCE,
        prober: ConnectivityProber | None = None,
        poll_interval: float | None = None,
        max_backoff: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self.kind = kind
        self.limit = limit or settings.feed_limit
        self.source = source
        self._prober = prober
        self._poll_interval = poll_interval or settings.feed_poll_interval
        self._max_backoff = max_backoff or settings.feed_max_backoff
        self._clock = clock

        self.items: list[Game] = []
        self.error: str | None = None
        self.error_kind: ErrorKind | None = None
        self.is_loading = False
        self.last_updated: float | None = None
        self._failures = 0
        self._poller: asyncio.Task | None = None

    async def load(self, limit: int | None = None, source: str | None = None) -> list[Game]:
        """Fetch the listing and return the items now held by the feed.

        Args:
            limit: Overrides the feed limit from now on
            source: Overrides the feed source from now on
        """
        if limit is not None:
            self.limit = limit
        if source is not None:
            self.source = source

        self.is_loading = True
        try:
            games = await self._gateway.list_games(self.kind, self.limit, source=self.source)
        except CatalogError as e:
            self._failures += 1
            self.error_kind = classify(e)
            self.error = e.message
            logger.warning("Loading %s feed failed: %s", self.kind.value, e)
            return self.items
        finally:
            self.is_loading = False

        self.items = games
        self.error = None
        self.error_kind = None
        self.last_updated = self._clock()
        self._failures = 0
        if not games:
            logger.info("%s feed returned no games", self.kind.value)
        else:
            logger.debug("%s feed loaded %d games from %s", self.kind.value, len(games), self.sources)
        return self.items

    async def retry(self) -> list[Game]:
        return await self.load()

    @property
    def notice(self) -> str | None:
        """User-facing message for retryable failures only."""
        if self.error_kind is not None and is_retryable(self.error_kind):
            return describe(self.error_kind)
        return None

    @property
    def has_data(self) -> bool:
        return bool(self.items)

    @property
    def sources(self) -> list[str]:
        """Provider ids of the current items, in order of first appearance."""
        return list(dict.fromkeys(game.source for game in self.items))

    def source_info(self) -> dict[str, Any] | None:
        sources = self.sources
        if not sources:
            return None
        return {
            "primary": sources[0],
            "label": SOURCE_LABELS.get(sources[0], sources[0]),
            "count": len(sources),
            "is_hybrid": len(sources) > 1,
        }

    @property
    def connectivity(self) -> dict[str, bool] | None:
        return self._prober.status if self._prober is not None else None

    @property
    def is_partially_available(self) -> bool:
        return self._prober is not None and self._prober.is_partially_available

    @property
    def is_offline(self) -> bool:
        return self._prober is not None and self._prober.is_offline

    def next_delay(self) -> float:
        """Seconds until the next poll given the current failure streak."""
        return self._poll_interval * min(2**self._failures, self._max_backoff)

    async def _poll(self) -> None:
        while True:
            await self.load()
            await asyncio.sleep(self.next_delay())

    def start(self) -> None:
        """Start polling in the background. Idempotent."""
        if self._poller is None or self._poller.done():
            self._poller = asyncio.create_task(self._poll())
            logger.info(
                "Polling %s feed every %.0fs", self.kind.value, self._poll_interval
            )

    async def close(self) -> None:
        """Stop polling."""
        if self._poller is None:
            return
        self._poller.cancel()
        await asyncio.gather(self._poller, return_exceptions=True)
        self._poller = None

    @property
    def polling(self) -> bool:
        return self._poller is not None and not self._poller.done()
