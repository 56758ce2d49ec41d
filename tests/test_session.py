import asyncio

import pytest

from feed.errors import SessionUnresolved
from services.session import SIGNED_IN, SIGNED_OUT, SessionContext, SessionRegistry
from tests.conftest import ALICE, BOB


class FakeAuth:
    def __init__(self, identities=None):
        self.identities = identities or {}
        self.restores = 0
        self.listeners = []

    async def restore(self, telegram_id):
        self.restores += 1
        await asyncio.sleep(0)
        return self.identities.get(telegram_id)

    def on_session_change(self, cb):
        self.listeners.append(cb)
        return lambda: self.listeners.remove(cb)

    def emit(self, event, telegram_id, identity):
        for cb in list(self.listeners):
            cb(event, telegram_id, identity)


async def test_resolve_runs_once():
    auth = FakeAuth({1: ALICE})
    ctx = SessionContext(1, auth.restore)
    with pytest.raises(SessionUnresolved):
        ctx.require_resolved()

    results = await asyncio.gather(ctx.resolve(), ctx.resolve(), ctx.resolve())
    assert results == [ALICE, ALICE, ALICE]
    assert auth.restores == 1
    ctx.require_resolved()


async def test_resolve_without_session():
    ctx = SessionContext(1, FakeAuth().restore)
    assert await ctx.resolve() is None
    assert ctx.resolved


async def test_replace_notifies_until_unsubscribed():
    ctx = SessionContext(1, FakeAuth().restore)
    seen = []
    unsubscribe = ctx.on_change(seen.append)

    ctx.replace(ALICE)
    ctx.replace(ALICE)              # same identity, no event
    ctx.replace(None)
    unsubscribe()
    ctx.replace(BOB)

    assert seen == [ALICE, None]
    assert ctx.identity == BOB


async def test_registry_follows_auth_events():
    auth = FakeAuth({1: ALICE})
    registry = SessionRegistry(auth)
    ctx = await registry.get(1)
    assert ctx.identity == ALICE
    assert await registry.get(1) is ctx

    auth.emit(SIGNED_OUT, 1, None)
    assert ctx.identity is None

    auth.emit(SIGNED_IN, 2, BOB)
    assert (await registry.get(2)).identity == BOB
    assert auth.restores == 1

    registry.close()
    assert auth.listeners == []


def test_identity_roles():
    assert BOB.is_coach and not ALICE.is_coach
