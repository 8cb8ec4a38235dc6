# events.py
# Lifecycle event channel between the executor and whoever renders progress.
#
# emit() never awaits, never raises and never calls into a consumer: it only
# enqueues, and a full buffer drops its oldest event. A channel is consumed
# either by `async for` or by its listeners. Listeners run one at a time in
# worker threads from a delivery task, so a slow or failing listener cannot
# hold up the executor. Consumers observe execution; they cannot steer it.

import asyncio
import logging
from typing import AsyncIterator, Callable

from tool_orchestrator.models import StepEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[StepEvent], None]

_CLOSED = object()


class EventChannel:
    def __init__(self, maxsize: int = 256, listeners: list[EventListener] | None = None) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._listeners: list[EventListener] = list(listeners or [])
        self._delivery: asyncio.Task | None = None
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def delivery(self) -> asyncio.Task | None:
        """The task feeding listeners, once the first event has been emitted."""
        return self._delivery

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def _put(self, item: object) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                try:
                    dropped = self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    continue
                if dropped is not _CLOSED:
                    self.dropped += 1
                    logger.debug("Event buffer full, dropped %s", dropped.type.value)

    def emit(self, event: StepEvent) -> None:
        if self._closed:
            logger.debug("Dropping %s after channel close", event.type.value)
            return

        self._put(event)
        if self._listeners and self._delivery is None:
            self._delivery = asyncio.get_running_loop().create_task(self._deliver())

    async def _deliver(self) -> None:
        async for event in self:
            for listener in list(self._listeners):
                try:
                    await asyncio.to_thread(listener, event)
                except Exception:
                    logger.exception("Event listener failed on %s", event.type.value)

    def close(self) -> None:
        """Stop accepting events. Buffered events are still delivered."""
        if not self._closed:
            self._closed = True
            self._put(_CLOSED)

    async def aclose(self) -> None:
        """Close, then wait until listeners have seen every buffered event."""
        self.close()
        if self._delivery is not None:
            await self._delivery

    def drain(self) -> list[StepEvent]:
        """Return every buffered event without waiting."""
        events: list[StepEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return events
            if item is _CLOSED:
                # keep the sentinel for any async consumer still iterating
                self._queue.put_nowait(_CLOSED)
                return events
            events.append(item)

    def __aiter__(self) -> AsyncIterator[StepEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StepEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                return
            yield item
