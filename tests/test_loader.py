import asyncio

import pytest

from feed.errors import FeedLoadFailed
from feed.loader import FeedLoader
from tests.conftest import ALICE, make_post


async def test_posts_newest_first(store):
    posts = await FeedLoader(store).load(ALICE.id)
    assert [p.id for p in posts] == ["b", "c", "a"]


async def test_ties_keep_store_order(store):
    store.posts = [make_post("x", 5), make_post("y", 5), make_post("z", 1)]
    posts = await FeedLoader(store).load(ALICE.id)
    assert [p.id for p in posts] == ["z", "x", "y"]


async def test_liked_by_viewer_and_counts(store):
    store.likes = {("a", ALICE.id), ("a", "u2"), ("c", "u2")}
    posts = {p.id: p for p in await FeedLoader(store).load(ALICE.id)}
    assert posts["a"].liked_by_viewer and posts["a"].likes == 2
    assert not posts["c"].liked_by_viewer and posts["c"].likes == 1
    assert not posts["b"].liked_by_viewer and posts["b"].likes == 0


async def test_anonymous_viewer_skips_like_lookup(store):
    store.likes = {("a", ALICE.id)}
    posts = await FeedLoader(store).load(None)
    assert "fetch_liked_post_ids" not in store.calls
    assert not any(p.liked_by_viewer for p in posts)


async def test_empty_feed(store):
    store.posts = []
    assert await FeedLoader(store).load(ALICE.id) == []


async def test_failure_raises_feed_load_failed(store):
    store.fail.add("fetch_posts")
    with pytest.raises(FeedLoadFailed):
        await FeedLoader(store).load(ALICE.id)


async def test_superseded_result_is_dropped(store):
    loader = FeedLoader(store)
    first_gate = store.gate("fetch_posts")

    first = asyncio.ensure_future(loader.load(ALICE.id))
    await asyncio.sleep(0)
    second = await loader.load(ALICE.id)

    first_gate.set()
    assert await first is None
    assert [p.id for p in second] == ["b", "c", "a"]


async def test_superseded_failure_is_silent(store):
    loader = FeedLoader(store)
    gate = store.gate("fetch_posts")
    first = asyncio.ensure_future(loader.load(ALICE.id))
    await asyncio.sleep(0)
    await loader.load(ALICE.id)

    store.fail.add("fetch_posts")
    gate.set()
    assert await first is None
