"""Debounce primitive.

Delays propagation of a rapidly changing value until it has been stable
for a configured interval. Intermediate values are discarded.
"""

import asyncio
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Expose the latest input only after it stops changing for ``delay`` seconds.

    Every ``push`` re-arms the timer; when it fires, ``value`` is updated
    and ``on_settle`` (if any) is called with the settled value. A delay of
    zero settles synchronously inside ``push``.

    Must be used from inside a running event loop when ``delay > 0``.

    Example:
        ```python
        debouncer = Debouncer(0.3, on_settle=print)
        debouncer.push("z")
        debouncer.push("ze")
        debouncer.push("zel")   # only "zel" is printed, 0.3s later
        ```
    """

    def __init__(
        self,
        delay: float,
        on_settle: Callable[[T], None] | None = None,
        initial: T | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError("delay must not be negative")
        self._delay = delay
        self._on_settle = on_settle
        self._value = initial
        self._task: asyncio.Task | None = None

    @property
    def value(self) -> T | None:
        """The last settled value."""
        return self._value

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def push(self, value: T) -> None:
        """Feed a new input value, restarting the quiet period."""
        self.cancel()
        if self._delay == 0:
            self._settle(value)
            return
        self._task = asyncio.get_running_loop().create_task(self._wait_then_settle(value))

    async def _wait_then_settle(self, value: T) -> None:
        await asyncio.sleep(self._delay)
        self._task = None
        self._settle(value)

    def _settle(self, value: T) -> None:
        self._value = value
        if self._on_settle is not None:
            self._on_settle(value)

    def reset(self, value: T | None) -> None:
        """Replace the settled value without notifying ``on_settle``."""
        self.cancel()
        self._value = value

    def cancel(self) -> None:
        """Drop the pending value, if any. Safe to call repeatedly."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def wait(self) -> None:
        """Wait until the pending value (if any) has settled or been cancelled."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})
