import asyncio

from database.changes import Change, ChangeHub, INSERT
from feed.live import LiveChangeListener


class Counter:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


async def test_burst_collapses_into_one_reload():
    hub, reload = ChangeHub(), Counter()
    listener = LiveChangeListener(hub.subscribe, reload, delay=0.05)
    listener.start()

    for i in range(5):
        hub.publish(Change("posts", INSERT, str(i)))
    await asyncio.sleep(0.15)

    assert reload.calls == 1
    await listener.stop()


async def test_other_tables_are_ignored():
    hub, reload = ChangeHub(), Counter()
    listener = LiveChangeListener(hub.subscribe, reload, delay=0)
    listener.start()
    hub.publish(Change("comments", INSERT, "x"))
    await asyncio.sleep(0.02)
    assert reload.calls == 0
    await listener.stop()


async def test_no_reload_after_stop():
    hub, reload = ChangeHub(), Counter()
    listener = LiveChangeListener(hub.subscribe, reload, delay=0.05)
    listener.start()
    hub.publish(Change("posts", INSERT, "1"))
    await listener.stop()

    hub.publish(Change("posts", INSERT, "2"))
    await asyncio.sleep(0.1)
    assert reload.calls == 0
    assert not listener.active


async def test_failing_reload_does_not_kill_listener():
    hub = ChangeHub()
    calls = []

    async def reload():
        calls.append(1)
        raise RuntimeError("boom")

    listener = LiveChangeListener(hub.subscribe, reload, delay=0)
    listener.start()
    hub.publish(Change("posts", INSERT, "1"))
    await asyncio.sleep(0.02)
    hub.publish(Change("posts", INSERT, "2"))
    await asyncio.sleep(0.02)
    assert len(calls) == 2
    await listener.stop()
