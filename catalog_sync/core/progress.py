"""
One-way progress channel between sync workers and a progress consumer.

Workers publish without awaiting; a dedicated task drains events to the sink,
so a slow consumer (e.g. a UI redraw) never stalls a download.
"""

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from catalog_sync.models.stats import SyncProgress

log = logging.getLogger(__name__)

ProgressSink = Callable[[SyncProgress], Awaitable[None] | None]


class ProgressChannel:
    """
    Buffers progress events and delivers them in order to a sync or async sink.

    With `maxsize=0` the buffer is unbounded. With a bound, publishing into a
    full buffer drops the oldest pending event; the newest event is always
    kept, so the final event of a run is always delivered.
    """

    def __init__(self, sink: ProgressSink | None, maxsize: int = 0):
        self._sink = sink
        self.maxsize = maxsize
        self.dropped = 0
        self._events: deque[SyncProgress] = deque()
        self._wakeup = asyncio.Event()
        self._closed = False
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._sink is not None and self._task is None:
            self._task = asyncio.create_task(self._drain())

    def publish(self, event: SyncProgress) -> None:
        """Queues an event for delivery. Never blocks."""
        if self._closed:
            raise RuntimeError("Progress channel is closed.")
        if self._sink is None:
            return
        if self.maxsize and len(self._events) >= self.maxsize:
            self._events.popleft()
            self.dropped += 1
        self._events.append(event)
        self._wakeup.set()

    async def _deliver(self, event: SyncProgress) -> None:
        try:
            result = self._sink(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            log.warning(f"[yellow]Progress callback raised: {e}[/yellow]")

    async def _drain(self) -> None:
        while True:
            while self._events:
                await self._deliver(self._events.popleft())
            if self._closed:
                return
            self._wakeup.clear()
            await self._wakeup.wait()

    async def aclose(self) -> None:
        """Stops accepting events and waits until every buffered one is delivered."""
        self._closed = True
        self._wakeup.set()
        if self._task is not None:
            await self._task
        if self.dropped:
            log.debug(f"Progress channel dropped {self.dropped} stale events.")

    def cancel(self) -> None:
        """Stops delivery immediately, discarding pending events."""
        self._closed = True
        self._events.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def __aenter__(self) -> "ProgressChannel":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self.aclose()
        else:
            self.cancel()
        return False
