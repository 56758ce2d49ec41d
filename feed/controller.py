# feed/controller.py
"""One viewer's feed: posts on screen, error indicator, likes, composer,
open comment thread and the live reload subscription."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from config import LIVE_RELOAD_DELAY
from feed.comments import CommentThread
from feed.composer import Composer
from feed.errors import FeedLoadFailed
from feed.likes import LikeMutator, LikeState
from feed.live import LiveChangeListener
from feed.loader import FeedLoader
from feed.models import FeedPost

log = logging.getLogger(__name__)


class FeedController:
    def __init__(self, store, bucket, session,
                 read_image: Callable[[str], Awaitable[bytes]],
                 reload_delay: float = LIVE_RELOAD_DELAY):
        self.store = store
        self.session = session

        self.posts: list[FeedPost] = []
        self.error: str | None = None
        self.loading = True
        self.started = False

        self.loader = FeedLoader(store)
        self.likes = LikeMutator(store, self.find, self._viewer_id, on_settled=self.reload)
        self.listener = LiveChangeListener(store.subscribe, self.reload, table="posts",
                                           delay=reload_delay)
        self.composer = Composer(store, bucket, session, read_image, on_posted=self.reload)
        self.thread: CommentThread | None = None
        self._session_unsubscribe = session.on_change(self._on_session_change)
        self._tasks: set[asyncio.Task] = set()

    # ─── lifecycle ──────────────────────────────────────
    async def start(self) -> None:
        if self.started:
            return
        self.session.require_resolved()
        self.started = True
        self.listener.start()
        await self.reload()

    async def stop(self) -> None:
        self.started = False
        self._session_unsubscribe()
        await self.listener.stop()
        for task in list(self._tasks):
            task.cancel()

    # ─── loading ────────────────────────────────────────
    def _viewer_id(self) -> Optional[str]:
        identity = self.session.identity
        return identity.id if identity else None

    def find(self, post_id: str) -> FeedPost | None:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    async def refresh(self) -> bool:
        """Load the feed. Returns False if a newer load superseded this one.
        On failure the previous posts stay and `error` is set."""
        self.session.require_resolved()
        try:
            posts = await self.loader.load(self._viewer_id())
        except FeedLoadFailed as e:
            self.error = str(e)
            self.loading = False
            log.error("Feed load failed for %s: %s", self._viewer_id(), e.__cause__ or e)
            raise
        if posts is None:
            return False
        self.likes.reapply(posts)
        self.posts = posts
        self.error = None
        self.loading = False
        return True

    async def reload(self) -> None:
        """refresh() for background triggers: failures only set `error`."""
        try:
            await self.refresh()
        except FeedLoadFailed:
            pass

    # ─── likes ──────────────────────────────────────────
    def like(self, post_id: str) -> asyncio.Task | None:
        return self.likes.like(post_id)

    def unlike(self, post_id: str) -> asyncio.Task | None:
        return self.likes.unlike(post_id)

    def toggle_like(self, post_id: str) -> asyncio.Task | None:
        return self.likes.toggle(post_id)

    def like_state(self, post_id: str) -> LikeState:
        return self.likes.state(post_id)

    # ─── comments ───────────────────────────────────────
    async def open_comments(self, post_id: str) -> CommentThread:
        if self.thread is None or self.thread.post_id != post_id:
            self.thread = CommentThread(self.store, post_id, self.session, on_posted=self.reload)
        await self.thread.load()
        return self.thread

    async def post_comment(self, post_id: str, text: str) -> str:
        if self.thread is None or self.thread.post_id != post_id:
            self.thread = CommentThread(self.store, post_id, self.session, on_posted=self.reload)
        return await self.thread.post(text)

    # ─── session ────────────────────────────────────────
    def _on_session_change(self, identity) -> None:
        if not self.started:
            return
        # liked_by_viewer depends on who is looking
        task = asyncio.ensure_future(self.reload())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


class FeedRegistry:
    """One FeedController per Telegram user, owned by the bot process."""

    def __init__(self, store, bucket, read_image: Callable[[str], Awaitable[bytes]],
                 reload_delay: float = LIVE_RELOAD_DELAY):
        self.store = store
        self.bucket = bucket
        self.read_image = read_image
        self.reload_delay = reload_delay
        self._controllers: dict[int, FeedController] = {}

    async def get(self, session) -> FeedController:
        controller = self._controllers.get(session.telegram_id)
        if controller is None or controller.session is not session:
            if controller is not None:
                await controller.stop()
            controller = FeedController(self.store, self.bucket, session, self.read_image,
                                        reload_delay=self.reload_delay)
            self._controllers[session.telegram_id] = controller
        if not controller.started:
            await controller.start()
        return controller

    async def drop(self, telegram_id: int) -> None:
        controller = self._controllers.pop(telegram_id, None)
        if controller is not None:
            await controller.stop()

    async def close(self) -> None:
        for telegram_id in list(self._controllers):
            await self.drop(telegram_id)
