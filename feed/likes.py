# feed/likes.py
"""Optimistic like / unlike.

Per (post, viewer) pair the state is Unliked, Liked, PendingLike or
PendingUnlike. The displayed count always equals the last loaded count plus
the viewer's uncommitted delta. Only one request per pair is in flight.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional

from feed.errors import BackendError, MutationFailed
from feed.models import FeedPost

log = logging.getLogger(__name__)


class LikeState(enum.Enum):
    UNLIKED = "unliked"
    LIKED = "liked"
    PENDING_LIKE = "pending_like"
    PENDING_UNLIKE = "pending_unlike"


_DELTA = {LikeState.PENDING_LIKE: +1, LikeState.PENDING_UNLIKE: -1}


class LikeMutator:
    def __init__(
        self,
        store,
        find: Callable[[str], Optional[FeedPost]],
        viewer: Callable[[], Optional[str]],
        on_settled: Callable[[], Awaitable[None]] | None = None,
    ):
        self.store = store
        self.find = find            # post lookup in the current feed
        self.viewer = viewer        # current viewer id or None
        self.on_settled = on_settled
        self._pending: dict[tuple[str, str], LikeState] = {}     # (viewer, post) -> state

    def state(self, post_id: str) -> LikeState:
        key = (self.viewer(), post_id)
        if key in self._pending:
            return self._pending[key]
        post = self.find(post_id)
        return LikeState.LIKED if post and post.liked_by_viewer else LikeState.UNLIKED

    @property
    def pending(self) -> dict[str, LikeState]:
        """Pending states of the current viewer, by post id."""
        viewer_id = self.viewer()
        return {post_id: state for (who, post_id), state in self._pending.items()
                if who == viewer_id}

    # ─── public API ─────────────────────────────────────
    def like(self, post_id: str) -> asyncio.Task | None:
        return self._start(post_id, LikeState.PENDING_LIKE)

    def unlike(self, post_id: str) -> asyncio.Task | None:
        return self._start(post_id, LikeState.PENDING_UNLIKE)

    def toggle(self, post_id: str) -> asyncio.Task | None:
        state = self.state(post_id)
        if state is LikeState.LIKED:
            return self.unlike(post_id)
        if state is LikeState.UNLIKED:
            return self.like(post_id)
        return None

    def reapply(self, posts: list[FeedPost]) -> None:
        """Put still-pending deltas back on top of a freshly loaded baseline."""
        by_id = {p.id: p for p in posts}
        for post_id, state in self.pending.items():
            post = by_id.get(post_id)
            if post is None:
                continue
            target = state is LikeState.PENDING_LIKE
            if post.liked_by_viewer == target:
                continue            # the server already has it
            _apply(post, _DELTA[state])

    # ─── internals ──────────────────────────────────────
    def _start(self, post_id: str, pending: LikeState) -> asyncio.Task | None:
        """Apply the change locally and return the task that settles it.
        Returns None when the call is ignored."""
        viewer_id = self.viewer()
        post = self.find(post_id)
        key = (viewer_id, post_id)
        if viewer_id is None or post is None or key in self._pending:
            return None
        wanted = pending is LikeState.PENDING_LIKE
        if post.liked_by_viewer == wanted:
            return None

        self._pending[key] = pending
        _apply(post, _DELTA[pending])
        return asyncio.ensure_future(self._settle(post_id, viewer_id, pending))

    async def _settle(self, post_id: str, viewer_id: str, pending: LikeState) -> LikeState:
        try:
            if pending is LikeState.PENDING_LIKE:
                await self.store.insert_like(post_id, viewer_id)
            else:
                await self.store.delete_like(post_id, viewer_id)
        except BackendError as e:
            del self._pending[(viewer_id, post_id)]
            # the feed may have been reloaded meanwhile: roll back on what is shown now,
            # unless it now belongs to someone else
            post = self.find(post_id)
            if post is not None and self.viewer() == viewer_id:
                _apply(post, -_DELTA[pending])
            log.warning("Like update failed for post %s: %s", post_id, e)
            raise MutationFailed("Failed to update like status") from e

        del self._pending[(viewer_id, post_id)]
        if self.on_settled is not None:
            await self.on_settled()
        return LikeState.LIKED if pending is LikeState.PENDING_LIKE else LikeState.UNLIKED


def _apply(post: FeedPost, delta: int) -> None:
    post.likes += delta
    post.liked_by_viewer = delta > 0
