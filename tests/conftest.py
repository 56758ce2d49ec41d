import asyncio
import os
import sys
import tempfile
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# settings must be in place before config is imported anywhere
_TMP = tempfile.mkdtemp(prefix="fringe-tests-")
os.environ["DB_PATH"] = f"sqlite+aiosqlite:///{_TMP}/test.sqlite3"
os.environ["STORAGE_ROOT"] = str(Path(_TMP) / "storage")
os.environ["PUBLIC_URL"] = "http://test.local"

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from database.database import Base, engine                     # noqa: E402
from feed.errors import StoreError, StorageError                # noqa: E402
from feed.models import Author, FeedComment, FeedPost           # noqa: E402
from services.session import Identity                           # noqa: E402

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ALICE = Identity(id="u1", email="alice@example.com", full_name="Alice Green", role="student")
BOB = Identity(id="u2", email="bob@example.com", full_name="Bob Birdie", role="coach")


def make_post(post_id: str, minutes_ago: int = 0, author: Identity = BOB, **kw) -> FeedPost:
    return FeedPost(
        id=post_id,
        author=Author(author.id, author.full_name, author.role, None),
        content=kw.pop("content", f"post {post_id}"),
        image_urls=kw.pop("image_urls", []),
        created_at=NOW - timedelta(minutes=minutes_ago),
        **kw,
    )


# ─── database ──────────────────────────────────────────
@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# ─── in-memory fakes for the feed core ─────────────────
class FakeSubscription:
    def __init__(self, subs, entry):
        self._subs = subs
        self._entry = entry

    def unsubscribe(self):
        if self._entry in self._subs:
            self._subs.remove(self._entry)


class FakeStore:
    """Feed store in memory. `fail` names methods that raise StoreError;
    `hold[name]` is a queue of events, one awaited per call."""

    def __init__(self, posts=None, profiles=("u1", "u2")):
        self.posts: list[FeedPost] = list(posts or [])
        self.likes: set[tuple[str, str]] = set()
        self.comments: list[FeedComment] = []
        self.profiles = set(profiles)
        self.fail: set[str] = set()
        self.hold: dict[str, list[asyncio.Event]] = defaultdict(list)
        self.calls: list[str] = []
        self.subs: list[tuple[str, object]] = []
        self.inserted_posts: list[tuple[str, str, list[str]]] = []

    async def _enter(self, name):
        self.calls.append(name)
        if self.hold[name]:
            await self.hold[name].pop(0).wait()
        if name in self.fail:
            raise StoreError(f"{name} failed")

    def gate(self, name) -> asyncio.Event:
        event = asyncio.Event()
        self.hold[name].append(event)
        return event

    async def fetch_posts(self):
        await self._enter("fetch_posts")
        return [
            replace(p, likes=sum(1 for pid, _ in self.likes if pid == p.id),
                    comments=sum(1 for c in self.comments if c.post_id == p.id),
                    liked_by_viewer=False)
            for p in self.posts
        ]

    async def fetch_liked_post_ids(self, user_id):
        await self._enter("fetch_liked_post_ids")
        return {pid for pid, uid in self.likes if uid == user_id}

    async def insert_like(self, post_id, user_id):
        await self._enter("insert_like")
        self.likes.add((post_id, user_id))

    async def delete_like(self, post_id, user_id):
        await self._enter("delete_like")
        self.likes.discard((post_id, user_id))

    async def profile_exists(self, user_id):
        await self._enter("profile_exists")
        return user_id in self.profiles

    async def insert_post(self, user_id, content, image_urls):
        await self._enter("insert_post")
        post_id = f"p{len(self.posts) + 1}"
        urls = list(image_urls)
        self.inserted_posts.append((user_id, content, urls))
        self.posts.append(FeedPost(post_id, None, content, urls, NOW + timedelta(minutes=len(self.posts))))
        return post_id

    async def fetch_comments(self, post_id):
        await self._enter("fetch_comments")
        return [c for c in self.comments if c.post_id == post_id]

    async def insert_comment(self, post_id, user_id, content):
        await self._enter("insert_comment")
        comment_id = f"c{len(self.comments) + 1}"
        self.comments.append(FeedComment(comment_id, post_id, None, content,
                                         NOW + timedelta(seconds=len(self.comments))))
        return comment_id

    def subscribe(self, table, callback):
        entry = (table, callback)
        self.subs.append(entry)
        return FakeSubscription(self.subs, entry)

    def notify(self, table="posts"):
        for t, cb in list(self.subs):
            if t == table:
                cb(object())


class FakeBucket:
    def __init__(self, fail_on: int | None = None):
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.fail_on = fail_on          # 1-based index of the upload that fails
        self.uploads = 0

    async def upload(self, path, data, *, content_type="image/jpeg", cache_control="3600", upsert=False):
        self.uploads += 1
        if self.fail_on is not None and self.uploads == self.fail_on:
            raise StorageError("upload failed")
        self.objects[path] = data
        return path

    def get_public_url(self, path):
        return f"http://test.local/storage/post-images/{path}"

    async def remove(self, paths):
        for path in paths:
            self.objects.pop(path, None)
            self.removed.append(path)
        return list(paths)


class FakeSession:
    def __init__(self, identity=ALICE, resolved=True, telegram_id=100):
        self.telegram_id = telegram_id
        self.identity = identity
        self.resolved = resolved
        self.listeners = []

    def require_resolved(self):
        from feed.errors import SessionUnresolved
        if not self.resolved:
            raise SessionUnresolved()

    def on_change(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener) if listener in self.listeners else None

    def replace(self, identity):
        self.identity = identity
        for listener in list(self.listeners):
            listener(identity)


async def read_image(ref: str) -> bytes:
    return f"bytes of {ref}".encode()


@pytest.fixture
def store():
    return FakeStore([make_post("a", 30), make_post("b", 10), make_post("c", 20)])


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def session():
    return FakeSession()


async def add_profile(full_name: str, role: str = "student", telegram_id: int | None = None,
                      **kw):
    """Insert a profile row directly, bypassing password hashing."""
    from database.database import async_session
    from database.profile import Profile

    email = kw.pop("email", f"{full_name.split()[0].lower()}@example.com")
    async with async_session() as ses:
        profile = Profile(email=email, password_hash="x$y", full_name=full_name, role=role,
                          telegram_id=telegram_id, **kw)
        ses.add(profile)
        await ses.commit()
        return profile
