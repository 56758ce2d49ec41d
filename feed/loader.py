from __future__ import annotations

import asyncio
import logging

from feed.errors import BackendError, FeedLoadFailed
from feed.models import FeedPost

log = logging.getLogger(__name__)


class FeedLoader:
    """Fetches posts for a viewer. Only the most recently issued load may
    deliver a result: older calls that finish later return None."""

    def __init__(self, store):
        self.store = store
        self._generation = 0

    async def _liked(self, viewer_id: str | None) -> set[str]:
        if not viewer_id:
            return set()
        return await self.store.fetch_liked_post_ids(viewer_id)

    async def load(self, viewer_id: str | None = None) -> list[FeedPost] | None:
        self._generation += 1
        generation = self._generation

        try:
            posts, liked = await asyncio.gather(
                self.store.fetch_posts(),
                self._liked(viewer_id),
            )
        except BackendError as e:
            if generation != self._generation:
                log.debug("Superseded feed load failed: %s", e)
                return None
            raise FeedLoadFailed() from e

        if generation != self._generation:
            log.debug("Dropping superseded feed load #%s", generation)
            return None

        # stable: ties keep the store's order
        posts = sorted(posts, key=lambda p: p.created_at, reverse=True)
        for post in posts:
            post.liked_by_viewer = post.id in liked
        return posts
