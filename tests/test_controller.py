import asyncio

import pytest

from feed.controller import FeedController, FeedRegistry
from feed.errors import EmptyComment, FeedLoadFailed, MutationFailed, SessionUnresolved
from feed.likes import LikeState
from tests.conftest import ALICE, BOB, FakeSession, make_post, read_image


def controller(store, bucket, session):
    return FeedController(store, bucket, session, read_image, reload_delay=0)


async def test_start_loads_and_subscribes(store, bucket, session):
    c = controller(store, bucket, session)
    await c.start()
    assert [p.id for p in c.posts] == ["b", "c", "a"]
    assert not c.loading and c.error is None
    assert store.subs and store.subs[0][0] == "posts"
    await c.stop()
    assert store.subs == []


async def test_unresolved_session_refuses_to_load(store, bucket):
    c = controller(store, bucket, FakeSession(resolved=False))
    with pytest.raises(SessionUnresolved):
        await c.start()
    assert "fetch_posts" not in store.calls


async def test_failed_refresh_keeps_previous_posts(store, bucket, session):
    c = controller(store, bucket, session)
    await c.start()
    before = [p.id for p in c.posts]

    store.fail.add("fetch_posts")
    with pytest.raises(FeedLoadFailed):
        await c.refresh()
    assert [p.id for p in c.posts] == before
    assert c.error == "Failed to load posts"

    store.fail.clear()
    await c.reload()
    assert c.error is None
    await c.stop()


async def test_like_then_reload_does_not_double_count(store, bucket, session):
    c = controller(store, bucket, session)
    await c.start()
    await c.toggle_like("a")
    post = c.find("a")
    assert post.likes == 1 and post.liked_by_viewer
    await c.refresh()
    assert c.find("a").likes == 1
    await c.stop()


async def test_live_change_reloads(store, bucket, session):
    c = controller(store, bucket, session)
    await c.start()
    store.posts.append(make_post("d", -60))
    store.notify("posts")
    await asyncio.sleep(0.02)
    assert c.posts[0].id == "d"
    await c.stop()


async def test_session_change_reloads_for_new_viewer(store, bucket, session):
    store.likes = {("a", BOB.id)}
    c = controller(store, bucket, session)
    await c.start()
    assert not c.find("a").liked_by_viewer

    session.replace(BOB)
    await asyncio.sleep(0.02)
    assert c.find("a").liked_by_viewer
    await c.stop()


async def test_comments_roundtrip(store, bucket, session):
    c = controller(store, bucket, session)
    await c.start()
    thread = await c.open_comments("a")
    assert thread.comments == []

    await c.post_comment("a", "great shot")
    await c.post_comment("a", "again")
    assert [x.content for x in c.thread.comments] == ["again", "great shot"]
    assert c.find("a").comments == 2

    with pytest.raises(EmptyComment):
        await c.post_comment("a", "  ")
    await c.stop()


async def test_comment_failure(store, bucket, session):
    store.fail.add("insert_comment")
    c = controller(store, bucket, session)
    await c.start()
    with pytest.raises(MutationFailed, match="Failed to post comment"):
        await c.post_comment("a", "hello")
    await c.stop()


async def test_registry_drop_stops_controller(store, bucket, session):
    feeds = FeedRegistry(store, bucket, read_image, reload_delay=0)
    first = await feeds.get(session)
    assert await feeds.get(session) is first
    assert first.started

    await feeds.drop(session.telegram_id)
    assert not first.started
    assert store.subs == []

    again = await feeds.get(session)
    assert again is not first
    await feeds.close()


async def test_signed_out_viewer_sees_feed(store, bucket):
    store.likes = {("a", ALICE.id)}
    c = controller(store, bucket, FakeSession(identity=None))
    await c.start()
    assert len(c.posts) == 3
    assert not any(p.liked_by_viewer for p in c.posts)
    assert c.toggle_like("a") is None
    await c.stop()


async def test_live_reload_keeps_pending_like(store, bucket, session):
    c = controller(store, bucket, session)
    await c.start()
    baseline = c.find("a").likes
    gate = store.gate("insert_like")

    task = c.like("a")
    store.notify("posts")
    await asyncio.sleep(0.02)
    assert store.calls.count("fetch_posts") >= 2
    post = c.find("a")
    assert post.likes == baseline + 1 and post.liked_by_viewer
    assert c.like_state("a") is LikeState.PENDING_LIKE

    gate.set()
    assert await task is LikeState.LIKED
    post = c.find("a")
    assert post.likes == baseline + 1 and post.liked_by_viewer
    await c.stop()
