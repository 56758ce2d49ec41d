"""Plain data objects handed from the store to the feed and the handlers."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass
class Author:
    id: str
    full_name: str
    role: str
    avatar_url: Optional[str]

    @property
    def label(self) -> str:
        return "Golf Pro" if self.role == "coach" else "Student"


@dataclass
class FeedPost:
    """A post as one viewer sees it: counts are server aggregates plus any
    optimistic overlay, `liked_by_viewer` is relative to that viewer."""
    id: str
    author: Optional[Author]
    content: str
    image_urls: list[str]
    created_at: datetime
    likes: int = 0
    comments: int = 0
    liked_by_viewer: bool = False


@dataclass
class FeedComment:
    id: str
    post_id: str
    author: Optional[Author]
    content: str
    created_at: datetime


@dataclass
class StagedImage:
    """Local image waiting in the composer; `ref` is whatever the reader understands."""
    ref: str
    size: Optional[int] = None
    content_type: str = "image/jpeg"


def time_ago(moment: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    minutes = int((now - moment).total_seconds() // 60)
    hours, days = minutes // 60, minutes // (60 * 24)
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return "Just now"
