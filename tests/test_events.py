import asyncio
import threading
import time

import pytest

from tool_orchestrator.events import EventChannel
from tool_orchestrator.models import EventType, StepEvent


def event(number, event_type=EventType.STEP_START):
    return StepEvent(type=event_type, step_number=number)


def test_listeners_see_every_event_in_order():
    seen = []

    async def go():
        channel = EventChannel(listeners=[seen.append])
        channel.emit(event(1))
        channel.emit(event(1, EventType.STEP_COMPLETE))
        await channel.aclose()

    asyncio.run(go())

    assert [(e.step_number, e.type) for e in seen] == [
        (1, EventType.STEP_START),
        (1, EventType.STEP_COMPLETE),
    ]


def test_emit_only_buffers_the_event():
    release = threading.Event()
    seen = []

    def blocked(e):
        release.wait(timeout=5)
        seen.append(e)

    async def go():
        channel = EventChannel(listeners=[blocked])
        started = time.perf_counter()
        for number in (1, 2, 3):
            channel.emit(event(number))
            await asyncio.sleep(0)
        elapsed = time.perf_counter() - started
        release.set()
        await channel.aclose()
        return elapsed

    elapsed = asyncio.run(go())

    assert elapsed < 1
    assert [e.step_number for e in seen] == [1, 2, 3]


def test_failing_listener_is_isolated():
    seen = []

    async def go():
        channel = EventChannel()
        channel.subscribe(lambda e: 1 / 0)
        channel.subscribe(seen.append)
        channel.emit(event(1))
        channel.emit(event(2))
        await channel.aclose()

    asyncio.run(go())

    assert [e.step_number for e in seen] == [1, 2]


def test_full_buffer_drops_the_oldest_event():
    channel = EventChannel(maxsize=2)

    for number in range(1, 6):
        channel.emit(event(number))

    assert [e.step_number for e in channel.drain()] == [4, 5]
    assert channel.dropped == 3


def test_async_iteration_ends_at_close():
    async def go():
        channel = EventChannel()
        received = []

        async def consume():
            async for item in channel:
                received.append(item.step_number)

        consumer = asyncio.create_task(consume())
        for number in (1, 2, 3):
            channel.emit(event(number))
            await asyncio.sleep(0)
        channel.close()
        await asyncio.wait_for(consumer, timeout=1)
        return received

    assert asyncio.run(go()) == [1, 2, 3]


def test_events_after_close_are_ignored():
    seen = []

    async def go():
        channel = EventChannel(listeners=[seen.append])
        channel.close()
        channel.emit(event(1))
        await channel.aclose()
        return channel

    channel = asyncio.run(go())

    assert seen == []
    assert channel.closed
    assert channel.delivery is None
    assert channel.drain() == []


def test_buffer_must_hold_something():
    with pytest.raises(ValueError):
        EventChannel(maxsize=0)
