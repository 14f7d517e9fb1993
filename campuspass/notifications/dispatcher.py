"""
Event dispatcher.

The Lifecycle Engine runs in worker threads (sync endpoints, the sweep) and
must return as soon as its commit is done. `publish` therefore only hands
the event to the event loop; subscribers run there, one event at a time, in
commit order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from campuspass.workflow.events import TransitionEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[TransitionEvent], Awaitable[None]]


class EventDispatcher:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[TransitionEvent] | None = None
        self._task: asyncio.Task[None] | None = None

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Bind to the running loop. Must be called from inside it."""
        queue: asyncio.Queue[TransitionEvent] = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._queue = queue
        self._task = self._loop.create_task(self._consume(queue), name="event-dispatcher")

    async def stop(self) -> None:
        """Handle everything already published, then stop the consumer."""
        if self._task is None:
            return
        await self.drain()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._loop = None
        self._queue = None

    def publish(self, event: TransitionEvent) -> None:
        """Thread-safe and non-blocking."""
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            logger.warning("Dispatcher not running; dropped %s for outpass=%s", event.event_name, event.outpass_number)
            return
        if _running_loop() is loop:
            # On the loop thread the event must be queued before a following drain().
            queue.put_nowait(event)
        else:
            loop.call_soon_threadsafe(queue.put_nowait, event)

    async def drain(self) -> None:
        """Wait until every event published so far has been handled."""
        if self._queue is not None:
            await self._queue.join()

    def wait_idle(self, timeout: float = 5.0) -> None:
        """`drain` for callers outside the loop thread (tests, scripts)."""
        if self._loop is None:
            return
        asyncio.run_coroutine_threadsafe(self.drain(), self._loop).result(timeout)

    async def _consume(self, queue: asyncio.Queue[TransitionEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                for subscriber in self._subscribers:
                    try:
                        await subscriber(event)
                    except Exception:
                        logger.exception("Subscriber failed on %s for outpass=%s", event.event_name, event.outpass_number)
            finally:
                queue.task_done()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
