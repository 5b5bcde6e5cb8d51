"""Connectivity prober for upstream sources."""

import asyncio
import logging
import time
from typing import Callable, Mapping

from game_cache.config import settings
from game_cache.protocols import UpstreamSource

logger = logging.getLogger(__name__)


class ConnectivityProber:
    """Report which upstream sources are reachable.

    Results are cached for ``ttl`` seconds so callers can ask on every
    keystroke, and concurrent ``probe`` calls share one in-flight check.
    ``probe`` never raises: a source that errors or times out is reported
    as unreachable.

    Example:
        ```python
        prober = ConnectivityProber({"igdb": igdb, "rawg": rawg})
        status = await prober.probe()   # {"igdb": True, "rawg": False}
        prober.is_partially_available   # True
        ```
    """

    def __init__(
        self,
        sources: Mapping[str, UpstreamSource],
        ttl: float | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the prober.

        Args:
            sources: Sources to check, keyed by provider id.
            ttl: Seconds a probe result is reused. Defaults to settings.
            timeout: Per-source probe timeout in seconds. Defaults to settings.
            clock: Monotonic time source.
        """
        self._sources = dict(sources)
        self._ttl = ttl if ttl is not None else settings.connectivity_ttl
        self._timeout = timeout or settings.connectivity_timeout
        self._clock = clock
        self._status: dict[str, bool] | None = None
        self._checked_at: float | None = None
        self._inflight: asyncio.Task | None = None

    async def probe(self, force: bool = False) -> dict[str, bool]:
        """Return ``{source_id: reachable}``, probing only when the cache expired.

        Args:
            force: Ignore the cached result
        """
        if not force and self._is_cached():
            return dict(self._status or {})

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._probe_all())
        # Shielded so one cancelled caller does not cancel the shared probe.
        status = await asyncio.shield(self._inflight)
        return dict(status)

    def _is_cached(self) -> bool:
        return (
            self._status is not None
            and self._checked_at is not None
            and self._clock() - self._checked_at < self._ttl
        )

    async def _probe_all(self) -> dict[str, bool]:
        source_ids = list(self._sources)
        results = await asyncio.gather(
            *(self._probe_one(self._sources[sid]) for sid in source_ids)
        )
        status = dict(zip(source_ids, results))
        self._status = status
        self._checked_at = self._clock()
        logger.debug("Connectivity: %s", status)
        return status

    async def _probe_one(self, source: UpstreamSource) -> bool:
        try:
            return bool(await asyncio.wait_for(source.probe(), timeout=self._timeout))
        except asyncio.TimeoutError:
            logger.info("Probe for %s timed out", source.source_id)
            return False
        except Exception as e:
            logger.info("Probe for %s failed: %s", source.source_id, e)
            return False

    def invalidate(self) -> None:
        """Forget the cached result so the next probe hits the network."""
        self._checked_at = None

    def reachable(self, source_id: str) -> bool | None:
        """Last known reachability of one source, or None if never probed."""
        if self._status is None:
            return None
        return self._status.get(source_id)

    @property
    def status(self) -> dict[str, bool] | None:
        return dict(self._status) if self._status is not None else None

    @property
    def is_fully_online(self) -> bool:
        return bool(self._status) and all(self._status.values())

    @property
    def is_offline(self) -> bool:
        return bool(self._status) and not any(self._status.values())

    @property
    def is_partially_available(self) -> bool:
        return bool(self._status) and any(self._status.values()) and not all(self._status.values())
