from __future__ import annotations

import logging
from typing import Awaitable, Callable

from feed.errors import BackendError, EmptyComment, FeedLoadFailed, MutationFailed, ProfileRequired
from feed.models import FeedComment

log = logging.getLogger(__name__)


class CommentThread:
    """Comments of one post, newest first."""

    def __init__(self, store, post_id: str, session,
                 on_posted: Callable[[], Awaitable[None]] | None = None):
        self.store = store
        self.post_id = post_id
        self.session = session
        self.on_posted = on_posted
        self.comments: list[FeedComment] = []
        self.error: str | None = None

    async def load(self) -> list[FeedComment]:
        try:
            comments = await self.store.fetch_comments(self.post_id)
        except BackendError as e:
            self.error = "Failed to load comments"
            raise FeedLoadFailed(self.error) from e
        self.comments = sorted(comments, key=lambda c: c.created_at, reverse=True)
        self.error = None
        return self.comments

    async def post(self, text: str) -> str:
        content = (text or "").strip()
        if not content:
            raise EmptyComment()
        identity = self.session.identity
        if identity is None:
            raise ProfileRequired("Sign in to comment")

        try:
            comment_id = await self.store.insert_comment(self.post_id, identity.id, content)
        except BackendError as e:
            log.warning("Comment on %s failed: %s", self.post_id, e)
            raise MutationFailed("Failed to post comment") from e

        try:
            await self.load()
        except FeedLoadFailed as e:
            log.warning("Comment list refresh failed for %s: %s", self.post_id, e)
        if self.on_posted is not None:
            await self.on_posted()
        return comment_id
