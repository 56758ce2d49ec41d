# database/store.py
"""Data access used by the feed. Every SQLAlchemy failure surfaces as StoreError."""
from __future__ import annotations

from functools import wraps
from typing import Callable, Iterable

from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError

from database.changes import hub, Change, Subscription
from database.comment import Comment
from database.database import async_session
from database.post import Post
from database.post_like import PostLike
from database.profile import Profile
from feed.errors import StoreError
from feed.models import Author, FeedComment, FeedPost


def store_errors(fn):
    @wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as e:
            raise StoreError(f"{fn.__name__} failed") from e
    return wrapper


def author_of(profile: Profile | None) -> Author | None:
    if profile is None:
        return None
    return Author(id=profile.id, full_name=profile.full_name,
                  role=profile.role, avatar_url=profile.avatar_url)


class FeedStore:
    def __init__(self, session_factory=async_session, changes=hub):
        self.session_factory = session_factory
        self.changes = changes

    # ─── posts ──────────────────────────────────────────
    @store_errors
    async def fetch_posts(self) -> list[FeedPost]:
        likes = (select(func.count(PostLike.id))
                 .where(PostLike.post_id == Post.id)
                 .correlate(Post).scalar_subquery())
        comments = (select(func.count(Comment.id))
                    .where(Comment.post_id == Post.id)
                    .correlate(Post).scalar_subquery())
        stmt = (
            select(Post, Profile, likes.label("likes"), comments.label("comments"))
            .join(Profile, Profile.id == Post.user_id, isouter=True)
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        async with self.session_factory() as ses:
            rows = (await ses.execute(stmt)).all()
        return [
            FeedPost(
                id=post.id,
                author=author_of(profile),
                content=post.content or "",
                image_urls=list(post.image_urls or []),
                created_at=post.created_at,
                likes=n_likes or 0,
                comments=n_comments or 0,
            )
            for post, profile, n_likes, n_comments in rows
        ]

    @store_errors
    async def insert_post(self, user_id: str, content: str, image_urls: Iterable[str]) -> str:
        urls = list(image_urls)
        async with self.session_factory() as ses:
            post = Post(user_id=user_id, content=content, image_urls=urls or None)
            ses.add(post)
            await ses.commit()
            return post.id

    # ─── likes ──────────────────────────────────────────
    @store_errors
    async def fetch_liked_post_ids(self, user_id: str) -> set[str]:
        async with self.session_factory() as ses:
            ids = await ses.scalars(select(PostLike.post_id).where(PostLike.user_id == user_id))
            return set(ids.all())

    @store_errors
    async def insert_like(self, post_id: str, user_id: str) -> None:
        async with self.session_factory() as ses:
            ses.add(PostLike(post_id=post_id, user_id=user_id))
            await ses.commit()

    @store_errors
    async def delete_like(self, post_id: str, user_id: str) -> None:
        async with self.session_factory() as ses:
            await ses.execute(
                delete(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
            )
            await ses.commit()

    # ─── comments ───────────────────────────────────────
    @store_errors
    async def fetch_comments(self, post_id: str) -> list[FeedComment]:
        stmt = (
            select(Comment, Profile)
            .join(Profile, Profile.id == Comment.user_id, isouter=True)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        async with self.session_factory() as ses:
            rows = (await ses.execute(stmt)).all()
        return [
            FeedComment(id=c.id, post_id=c.post_id, author=author_of(p),
                        content=c.content, created_at=c.created_at)
            for c, p in rows
        ]

    @store_errors
    async def insert_comment(self, post_id: str, user_id: str, content: str) -> str:
        async with self.session_factory() as ses:
            comment = Comment(post_id=post_id, user_id=user_id, content=content)
            ses.add(comment)
            await ses.commit()
            return comment.id

    # ─── profiles ───────────────────────────────────────
    @store_errors
    async def profile_exists(self, user_id: str) -> bool:
        async with self.session_factory() as ses:
            return await ses.get(Profile, user_id) is not None

    # ─── live changes ───────────────────────────────────
    def subscribe(self, table: str, callback: Callable[[Change], None]) -> Subscription:
        return self.changes.subscribe(table, callback)
