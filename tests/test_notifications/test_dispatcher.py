from __future__ import annotations

import asyncio
from datetime import datetime

from campuspass.notifications.dispatcher import EventDispatcher
from campuspass.workflow.events import TransitionEvent, TransitionKind


def _event(n: int) -> TransitionEvent:
    return TransitionEvent(
        kind=TransitionKind.CREATED,
        outpass_id=n,
        outpass_number=f"OP-20260302-{n:06d}",
        student_id=1,
        hostel="H1",
        actor_id=1,
        occurred_at=datetime(2026, 3, 2, 9, 0),
        snapshot={},
    )


def test_events_are_handled_in_publish_order():
    seen = []

    async def subscriber(event):
        seen.append(event.outpass_id)

    async def scenario():
        dispatcher = EventDispatcher()
        dispatcher.subscribe(subscriber)
        dispatcher.start()
        for n in range(5):
            dispatcher.publish(_event(n))
        await dispatcher.drain()
        await dispatcher.stop()

    asyncio.run(scenario())
    assert seen == [0, 1, 2, 3, 4]


def test_failing_subscriber_does_not_block_others():
    seen = []

    async def broken(event):
        raise RuntimeError("boom")

    async def ok(event):
        seen.append(event.outpass_id)

    async def scenario():
        dispatcher = EventDispatcher()
        dispatcher.subscribe(broken)
        dispatcher.subscribe(ok)
        dispatcher.start()
        dispatcher.publish(_event(1))
        dispatcher.publish(_event(2))
        await dispatcher.drain()
        assert dispatcher.running
        await dispatcher.stop()

    asyncio.run(scenario())
    assert seen == [1, 2]


def test_stop_handles_queued_events_first():
    seen = []

    async def slow(event):
        await asyncio.sleep(0)
        seen.append(event.outpass_id)

    async def scenario():
        dispatcher = EventDispatcher()
        dispatcher.subscribe(slow)
        dispatcher.start()
        for n in range(3):
            dispatcher.publish(_event(n))
        await dispatcher.stop()
        assert not dispatcher.running

    asyncio.run(scenario())
    assert seen == [0, 1, 2]


def test_publish_from_worker_thread():
    seen = []

    async def subscriber(event):
        seen.append(event.outpass_id)

    async def scenario():
        dispatcher = EventDispatcher()
        dispatcher.subscribe(subscriber)
        dispatcher.start()
        await asyncio.to_thread(dispatcher.publish, _event(9))
        await dispatcher.drain()
        await dispatcher.stop()

    asyncio.run(scenario())
    assert seen == [9]


def test_publish_before_start_is_dropped(caplog):
    dispatcher = EventDispatcher()
    dispatcher.publish(_event(1))
    assert "dropped" in caplog.text
