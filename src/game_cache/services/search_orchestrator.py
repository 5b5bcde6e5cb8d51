"""Search session orchestration.

A ``SearchOrchestrator`` is one logical search session: it debounces
typed input, issues at most one live request at a time, drops responses
that were superseded, paginates and reports provenance. Failures are kept
as state (``error``/``error_kind``) instead of being raised.
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any

from game_cache.config import settings
from game_cache.entities import (
    AUTO_SOURCE,
    Game,
    SearchRequest,
    SearchResult,
    SearchStatus,
    SearchStrategy,
)
from game_cache.errors import CatalogError, ErrorKind, classify, describe, is_retryable

from .catalog_gateway import CatalogGateway
from .connectivity import ConnectivityProber
from .debounce import Debouncer
from .entity_cache import EntityCache
from .result_cache import ResultCache

logger = logging.getLogger(__name__)


def _normalize(query: str | None) -> str:
    return " ".join((query or "").split()).lower()


class CancellationToken:
    """Marks one issued request as obsolete once a newer one starts."""

    def __init__(self, query: str) -> None:
        self.query = query
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class SearchOrchestrator:
    """Debounced, cancellable, paginated search over a ``CatalogGateway``.

    State machine: ``IDLE -> SEARCHING -> (SUCCEEDED | FAILED)``, back to
    ``IDLE`` on ``clear_search``. Each request is tied to a
    ``CancellationToken``; starting a new one cancels the previous token
    and task first, and a response is only committed if its token is
    still current and its query still matches the debounced query.

    Example:
        ```python
        session = SearchOrchestrator(gateway, entity_cache=cache)
        session.on_input("zel")
        session.on_input("zelda")
        await session.wait()          # one request, for "zelda"
        print(session.result.items, session.result.sources)
        ```
    """

    def __init__(
        self,
        gateway: CatalogGateway,
        entity_cache: EntityCache[Game] | None = None,
        prober: ConnectivityProber | None = None,
        result_cache: ResultCache | None = None,
        debounce_delay: float | None = None,
        min_query_length: int | None = None,
        strategy: SearchStrategy | None = None,
        source: str | None = None,
        page_size: int | None = None,
        use_cache: bool = True,
        auto_search: bool = True,
        suggestion_strategy: SearchStrategy | None = None,
    ) -> None:
        """Initialize a search session.

        Args:
            gateway: Fan-out gateway the requests go through.
            entity_cache: Fresh detailed entities found here replace search rows.
            prober: Connectivity prober reported through ``connectivity``.
            result_cache: Short-lived result cache. None disables result caching.
            debounce_delay: Quiet period in seconds before typed input searches.
            min_query_length: Shorter queries never reach the network.
            strategy: Default fan-out strategy.
            source: ``"auto"`` or a pinned provider id.
            page_size: Initial page size.
            use_cache: Consult the result cache by default.
            auto_search: Search when the debounced input changes.
            suggestion_strategy: Strategy used for autocomplete suggestions.
        """
        self._gateway = gateway
        self._entity_cache = entity_cache
        self._prober = prober
        self._result_cache = result_cache
        self._min_query_length = (
            min_query_length if min_query_length is not None else settings.search_min_query_length
        )
        self.strategy = strategy or SearchStrategy(settings.search_strategy)
        self.source = source or settings.search_source
        self.use_cache = use_cache
        self.auto_search = auto_search
        self._suggestion_strategy = suggestion_strategy or SearchStrategy(
            settings.suggestion_strategy
        )

        delay = debounce_delay if debounce_delay is not None else settings.search_debounce_seconds
        self._debouncer: Debouncer[str] = Debouncer(delay, on_settle=self._on_debounced, initial="")

        self.query = ""
        self.page = 1
        self.page_size = page_size or settings.search_page_size
        self.status = SearchStatus.IDLE
        self.result = SearchResult.empty(page=1, page_size=self.page_size)
        self.error: str | None = None
        self.error_kind: ErrorKind | None = None
        self.has_searched = False

        self._last_issued: str | None = None
        self._token: CancellationToken | None = None
        self._task: asyncio.Task | None = None

    @property
    def debounced_query(self) -> str:
        return self._debouncer.value or ""

    @property
    def last_issued_query(self) -> str | None:
        return self._last_issued

    @property
    def is_searching(self) -> bool:
        return self.status is SearchStatus.SEARCHING

    @property
    def total_pages(self) -> int:
        return self.result.total_pages

    @property
    def elapsed_ms(self) -> float:
        return self.result.elapsed_ms

    @property
    def notice(self) -> str | None:
        """User-facing message, only for failures worth retrying."""
        if self.error_kind is not None and is_retryable(self.error_kind):
            return self.error
        return None

    @property
    def connectivity(self) -> dict[str, bool] | None:
        return self._prober.status if self._prober is not None else None

    def on_input(self, query: str) -> None:
        """Record typed input; a search follows once it settles."""
        self.query = query
        self._debouncer.push(query)

    def set_query(self, query: str) -> None:
        """Replace the query without triggering a search."""
        self.query = query
        self._debouncer.reset(query)

    def _on_debounced(self, query: str) -> None:
        if not self.auto_search:
            return
        if _normalize(query) == self._last_issued:
            return
        self._start(query, page=1, page_size=self.page_size)

    async def search(
        self,
        query: str,
        strategy: SearchStrategy | None = None,
        source: str | None = None,
        use_cache: bool | None = None,
        page: int = 1,
    ) -> SearchResult:
        """Search now, bypassing the debounce delay.

        Args:
            query: Search text
            strategy: Overrides the session strategy from now on
            source: Overrides the session source from now on
            use_cache: Consult the result cache for this call only
            page: Page to request, 1 unless jumping straight into results

        Returns:
            The session's result once this request settled. If the request
            was superseded, that is whatever the newer request produced.
        """
        if strategy is not None:
            self.strategy = strategy
        if source is not None:
            self.source = source
        self.set_query(query)
        task = self._start(query, page=max(page, 1), page_size=self.page_size, use_cache=use_cache)
        await self._await(task)
        return self.result

    async def go_to_page(self, page: int) -> bool:
        """Re-run the current query at ``page``.

        Returns:
            False (and changes nothing) when a search is in flight or the
            page is outside ``1..total_pages``
        """
        if self.is_searching or page < 1 or page > self.total_pages:
            return False
        task = self._start(self.debounced_query, page=page, page_size=self.page_size)
        await self._await(task)
        return True

    async def next_page(self) -> bool:
        return await self.go_to_page(self.page + 1)

    async def previous_page(self) -> bool:
        return await self.go_to_page(self.page - 1)

    async def change_page_size(self, page_size: int) -> bool:
        """Switch page size and return to page 1 of the current query."""
        if self.is_searching or page_size < 1:
            return False
        self.page_size = page_size
        if not self.has_searched:
            return True
        task = self._start(self.debounced_query, page=1, page_size=page_size)
        await self._await(task)
        return True

    def _start(
        self,
        query: str,
        page: int,
        page_size: int,
        use_cache: bool | None = None,
    ) -> asyncio.Task | None:
        self._cancel_inflight()
        self._last_issued = _normalize(query)
        self.page = page

        text = query.strip()
        if len(text) < self._min_query_length:
            self._apply_short_query(page_size)
            return None

        request = SearchRequest(
            query=text,
            page=page,
            page_size=page_size,
            strategy=self.strategy,
            source=self.source,
            use_cache=self.use_cache if use_cache is None else use_cache,
        )
        token = CancellationToken(query)
        self._token = token
        self.status = SearchStatus.SEARCHING
        self._task = asyncio.get_running_loop().create_task(self._run(request, token))
        return self._task

    def _apply_short_query(self, page_size: int) -> None:
        self.result = SearchResult.empty(page=1, page_size=page_size)
        self.status = SearchStatus.IDLE
        self.error = None
        self.error_kind = None
        self.has_searched = False
        self.page = 1

    def _cancel_inflight(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _is_current(self, token: CancellationToken) -> bool:
        return (
            token is self._token
            and not token.cancelled
            and _normalize(token.query) == _normalize(self.debounced_query)
        )

    async def _run(self, request: SearchRequest, token: CancellationToken) -> None:
        started = time.perf_counter()
        try:
            result = await self._execute(request)
        except CatalogError as e:
            if self._is_current(token):
                self._fail(e)
            else:
                logger.debug("Dropping failure of superseded search %r", request.query)
            return
        except Exception as e:
            logger.exception("Unexpected error searching %r", request.query)
            if self._is_current(token):
                self._fail(e)
            return

        if not self._is_current(token):
            logger.debug("Dropping stale result for %r", request.query)
            return

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._commit(replace(result, elapsed_ms=round(elapsed_ms, 2)))

    async def _execute(self, request: SearchRequest) -> SearchResult:
        result = None
        if request.use_cache and self._result_cache is not None:
            result = self._result_cache.get(request)

        if result is None:
            result = await self._gateway.search(request)
            if request.use_cache and self._result_cache is not None:
                self._result_cache.set(request, result)

        return self._with_cached_details(result)

    def _with_cached_details(self, result: SearchResult) -> SearchResult:
        """Swap search rows for fresh detailed entities from the entity cache."""
        if self._entity_cache is None:
            return result
        items = []
        for game in result.items:
            entry = self._entity_cache.peek(game.id)
            if entry is not None and entry.value.detailed and self._entity_cache.is_fresh(game.id):
                items.append(entry.value)
            else:
                items.append(game)
        return replace(result, items=items)

    def _commit(self, result: SearchResult) -> None:
        self.result = result
        self.page = result.page
        self.page_size = result.page_size
        self.status = SearchStatus.SUCCEEDED
        self.error = None
        self.error_kind = None
        self.has_searched = True
        logger.debug(
            "Search %r page %d: %d of %d from %s%s",
            self.debounced_query,
            result.page,
            len(result.items),
            result.total_count,
            sorted(result.sources),
            " (cached)" if result.cache_hit else "",
        )

    def _fail(self, exc: BaseException) -> None:
        # Previous items stay visible.
        self.status = SearchStatus.FAILED
        self.error_kind = classify(exc)
        self.error = describe(self.error_kind)
        self.has_searched = True
        logger.warning("Search %r failed: %s", self.debounced_query, exc)

    @staticmethod
    async def _await(task: asyncio.Task | None) -> None:
        if task is not None:
            await asyncio.wait({task})

    def clear_search(self) -> None:
        """Cancel everything and return to an empty idle session."""
        self._cancel_inflight()
        self._debouncer.reset("")
        self.query = ""
        self._last_issued = None
        self._apply_short_query(self.page_size)

    async def get_suggestions(self, query: str, limit: int = 5) -> list[Game]:
        """Autocomplete entries for ``query``.

        Uncached and independent of the session: it shares no token with
        the main search and resolves to ``[]`` on any upstream failure.
        """
        text = query.strip()
        if len(text) < self._min_query_length or limit < 1:
            return []
        request = SearchRequest(
            query=text,
            page=1,
            page_size=limit,
            strategy=self._suggestion_strategy,
            source=AUTO_SOURCE,
            use_cache=False,
        )
        try:
            result = await self._gateway.search(request)
        except CatalogError as e:
            logger.debug("Suggestions for %r failed: %s", text, e)
            return []
        return result.items[:limit]

    def get_cache_stats(self) -> dict[str, Any]:
        if self._result_cache is None:
            return {"size": 0, "max_size": 0, "ttl": 0, "entries": []}
        return self._result_cache.stats()

    def clear_cache(self) -> int:
        return self._result_cache.clear() if self._result_cache is not None else 0

    async def wait(self) -> None:
        """Wait for the pending debounce (if any) and the live request."""
        await self._debouncer.wait()
        await self._await(self._task)

    async def close(self) -> None:
        """Drop the pending debounce and cancel the live request."""
        self._debouncer.cancel()
        task = self._task
        self._cancel_inflight()
        await self._await(task)
        if self.is_searching:
            self.status = SearchStatus.IDLE
