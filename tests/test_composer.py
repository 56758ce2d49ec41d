import asyncio
import re

import pytest

from feed.composer import Composer, image_name
from feed.errors import (
    EmptyPost, ImageTooLarge, LimitExceeded, MutationFailed, ProfileRequired,
    SubmitInProgress, UploadFailed,
)
from tests.conftest import FakeBucket, FakeSession, read_image


def composer(store, bucket, session, **kw):
    return Composer(store, bucket, session, read_image, **kw)


def test_image_name_shape():
    assert re.fullmatch(r"\d{13}-[0-9a-f]{8}\.jpg", image_name())


def test_fifth_image_is_rejected(store, bucket, session):
    c = composer(store, bucket, session)
    for i in range(4):
        c.add_image(f"img{i}", 1000)
    with pytest.raises(LimitExceeded, match="up to 4 images"):
        c.add_image("img4", 1000)
    assert len(c.images) == 4


def test_large_image_is_rejected(store, bucket, session):
    c = composer(store, bucket, session)
    with pytest.raises(ImageTooLarge):
        c.add_image("big", 5 * 1024 * 1024 + 1)
    c.add_image("edge", 5 * 1024 * 1024)
    assert [i.ref for i in c.images] == ["edge"]


def test_remove_image(store, bucket, session):
    c = composer(store, bucket, session)
    c.add_image("a")
    c.add_image("b")
    assert c.remove_image(0)
    assert [i.ref for i in c.images] == ["b"]
    assert not c.remove_image(5)
    assert not c.remove_image(-1)


async def test_empty_post_makes_no_calls(store, bucket, session):
    c = composer(store, bucket, session)
    c.text = "   "
    assert not c.can_submit
    with pytest.raises(EmptyPost):
        await c.submit()
    assert store.calls == [] and bucket.uploads == 0


async def test_submit_text_and_images(store, bucket, session):
    posted = []

    async def on_posted():
        posted.append(True)

    c = composer(store, bucket, session, on_posted=on_posted)
    c.text = "  Nice round today  "
    c.add_image("one")
    c.add_image("two")

    await c.submit()

    user_id, content, urls = store.inserted_posts[-1]
    assert user_id == session.identity.id and content == "Nice round today"
    assert len(urls) == 2 and all(u.startswith("http://test.local/storage/post-images/") for u in urls)
    assert sorted(bucket.objects.values()) == [b"bytes of one", b"bytes of two"]
    assert c.text == "" and c.images == []
    assert posted == [True]
    assert not c.submitting


async def test_image_only_post(store, bucket, session):
    c = composer(store, bucket, session)
    c.add_image("one")
    await c.submit()
    assert store.inserted_posts[-1][1] == ""


async def test_failed_upload_removes_partial_uploads(store, session):
    bucket = FakeBucket(fail_on=2)
    c = composer(store, bucket, session)
    c.text = "hello"
    c.add_image("one")
    c.add_image("two")
    c.add_image("three")

    with pytest.raises(UploadFailed):
        await c.submit()

    assert bucket.objects == {}
    assert len(bucket.removed) == 1
    assert "insert_post" not in store.calls
    assert c.text == "hello" and len(c.images) == 3
    assert not c.submitting


async def test_missing_profile_blocks_post(store, bucket):
    c = composer(store, bucket, FakeSession(identity=None))
    c.text = "hi"
    with pytest.raises(ProfileRequired):
        await c.submit()

    store.profiles.clear()
    c = composer(store, bucket, FakeSession())
    c.text = "hi"
    with pytest.raises(ProfileRequired):
        await c.submit()
    assert bucket.uploads == 0


async def test_insert_failure_keeps_draft(store, bucket, session):
    store.fail.add("insert_post")
    c = composer(store, bucket, session)
    c.text = "hi"
    with pytest.raises(MutationFailed, match="Failed to create post"):
        await c.submit()
    assert c.text == "hi"
    assert not c.submitting


async def test_concurrent_submit_is_rejected(store, bucket, session):
    gate = store.gate("profile_exists")
    c = composer(store, bucket, session)
    c.text = "hi"

    first = asyncio.ensure_future(c.submit())
    await asyncio.sleep(0)
    assert c.submitting and not c.can_submit
    with pytest.raises(SubmitInProgress):
        await c.submit()

    gate.set()
    await first
    assert len(store.inserted_posts) == 1


def test_image_limit_holds_across_removals(store, bucket, session):
    c = composer(store, bucket, session)
    for i in range(4):
        c.add_image(f"a{i}")
    c.remove_image(1)
    c.remove_image(0)
    c.add_image("b0")
    c.remove_image(2)
    c.add_image("b1")
    c.add_image("b2")
    with pytest.raises(LimitExceeded):
        c.add_image("b3")
    assert [i.ref for i in c.images] == ["a2", "a3", "b1", "b2"]


class DownloadError(Exception):
    pass


async def test_failed_download_removes_partial_uploads(store, bucket, session):
    async def reader(ref):
        if ref == "C":
            raise DownloadError("telegram went away")
        return ref.encode()

    c = Composer(store, bucket, session, reader)
    for ref in "ABCD":
        c.add_image(ref)

    with pytest.raises(UploadFailed):
        await c.submit()

    assert bucket.objects == {}
    assert len(bucket.removed) == 2
    assert "insert_post" not in store.calls
    assert [i.ref for i in c.images] == ["A", "B", "C", "D"]
    assert not c.submitting


async def test_staged_images_are_frozen_while_submitting(store, bucket, session):
    reading, release = asyncio.Event(), asyncio.Event()

    async def reader(ref):
        if ref == "A":
            reading.set()
            await release.wait()
        return ref.encode()

    c = Composer(store, bucket, session, reader)
    for ref in "ABC":
        c.add_image(ref)

    task = asyncio.ensure_future(c.submit())
    await reading.wait()
    with pytest.raises(SubmitInProgress):
        c.remove_image(0)
    with pytest.raises(SubmitInProgress):
        c.add_image("D")

    release.set()
    await task
    assert sorted(bucket.objects.values()) == [b"A", b"B", b"C"]
    assert len(store.inserted_posts[-1][2]) == 3
    assert c.images == []
