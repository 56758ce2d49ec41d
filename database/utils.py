# database/utils.py
"""Profile, coach, booking, video and chat helpers used by the handlers."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update, func, or_, and_

from config import LESSON_TYPES
from database.booking import Booking
from database.chat import ChatMessage
from database.database import async_session
from database.profile import Profile, utcnow
from database.store import store_errors
from database.video import Video
from feed.errors import BookingError, EmptyComment, FringeError

PROFILE_FIELDS = {"full_name", "handicap", "notifications_enabled"}


# ───────────────────────────────  SESSION  ────────────────────────────────
@asynccontextmanager
async def get_session():
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


# ───────────────────────────────  PROFILES  ───────────────────────────────
@store_errors
async def get_profile(profile_id: str) -> Profile | None:
    async with get_session() as ses:
        return await ses.get(Profile, profile_id)


@store_errors
async def update_profile(profile_id: str, **fields) -> None:
    unknown = set(fields) - PROFILE_FIELDS
    if unknown:
        raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")
    if "full_name" in fields and not (fields["full_name"] or "").strip():
        raise FringeError("Name cannot be empty")
    async with get_session() as ses:
        await ses.execute(update(Profile).where(Profile.id == profile_id).values(**fields))
        await ses.commit()


async def set_avatar(profile_id: str, data: bytes, bucket) -> str:
    """Upload a new profile picture and point the profile at it."""
    path = f"avatars/{profile_id}-{int(time.time() * 1000)}.jpg"
    await bucket.upload(path, data, content_type="image/jpeg", cache_control="3600", upsert=True)
    url = bucket.get_public_url(path)
    await _save_avatar_url(profile_id, url)
    return url


@store_errors
async def _save_avatar_url(profile_id: str, url: str) -> None:
    async with get_session() as ses:
        await ses.execute(update(Profile).where(Profile.id == profile_id).values(avatar_url=url))
        await ses.commit()


@store_errors
async def notification_recipients() -> list[Profile]:
    async with get_session() as ses:
        res = await ses.scalars(
            select(Profile).where(Profile.telegram_id.is_not(None),
                                  Profile.notifications_enabled.is_(True))
        )
        return list(res.all())


# ───────────────────────────────  COACHES  ────────────────────────────────
@store_errors
async def list_coaches(query: str | None = None) -> list[Profile]:
    stmt = select(Profile).where(Profile.role == "coach")
    query = (query or "").strip().lower()
    if query:
        stmt = stmt.where(func.lower(Profile.full_name).contains(query))
    async with get_session() as ses:
        res = await ses.scalars(stmt.order_by(Profile.full_name))
        return list(res.all())


# ───────────────────────────────  BOOKINGS  ───────────────────────────────
@dataclass
class BookingView:
    booking: Booking
    coach_name: str
    coach_avatar: str | None
    student_name: str = ""


def lesson_type(index: int) -> dict:
    if not 0 <= index < len(LESSON_TYPES):
        raise BookingError("Unknown lesson type")
    return LESSON_TYPES[index]


@store_errors
async def create_booking(student_id: str, coach_id: str, lesson_index: int,
                         date: datetime | None = None) -> Booking:
    lesson = lesson_type(lesson_index)
    async with get_session() as ses:
        coach = await ses.get(Profile, coach_id)
        if coach is None or coach.role != "coach":
            raise BookingError("Coach not found")
        if coach_id == student_id:
            raise BookingError("You cannot book a lesson with yourself")
        booking = Booking(
            student_id=student_id,
            coach_id=coach_id,
            date=date or utcnow(),
            duration=lesson["duration"],
            lesson_type=lesson["name"],
            price=lesson["price"],
        )
        ses.add(booking)
        await ses.commit()
        return booking


@store_errors
async def list_bookings(student_id: str) -> list[BookingView]:
    stmt = (
        select(Booking, Profile)
        .join(Profile, Profile.id == Booking.coach_id)
        .where(Booking.student_id == student_id)
        .order_by(Booking.date.asc())
    )
    async with get_session() as ses:
        rows = (await ses.execute(stmt)).all()
    return [BookingView(b, coach.full_name, coach.avatar_url) for b, coach in rows]


@store_errors
async def list_coach_bookings(coach_id: str) -> list[BookingView]:
    stmt = (
        select(Booking, Profile)
        .join(Profile, Profile.id == Booking.student_id)
        .where(Booking.coach_id == coach_id, Booking.status == "pending")
        .order_by(Booking.date.asc())
    )
    async with get_session() as ses:
        rows = (await ses.execute(stmt)).all()
    return [BookingView(b, "", None, student_name=student.full_name) for b, student in rows]


@store_errors
async def cancel_booking(booking_id: str, student_id: str) -> bool:
    async with get_session() as ses:
        res = await ses.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.student_id == student_id,
                   Booking.status != "cancelled")
            .values(status="cancelled")
        )
        await ses.commit()
        return res.rowcount > 0


# ───────────────────────────────  VIDEOS  ─────────────────────────────────
@store_errors
async def create_video(student_id: str, title: str, file_ref: str,
                       duration: int | None = None, coach_id: str | None = None) -> Video:
    async with get_session() as ses:
        video = Video(student_id=student_id, title=(title or "Swing video").strip()[:120],
                      file_ref=file_ref, duration=duration, coach_id=coach_id)
        ses.add(video)
        await ses.commit()
        return video


@store_errors
async def get_video(video_id: str) -> Video | None:
    async with get_session() as ses:
        return await ses.get(Video, video_id)


@store_errors
async def list_videos(student_id: str) -> list[Video]:
    async with get_session() as ses:
        res = await ses.scalars(
            select(Video).where(Video.student_id == student_id).order_by(Video.created_at.desc())
        )
        return list(res.all())


@store_errors
async def pending_reviews(coach_id: str) -> list[Video]:
    """Pending videos sent to this coach, plus the ones sent to nobody in particular."""
    async with get_session() as ses:
        res = await ses.scalars(
            select(Video)
            .where(Video.status == "pending",
                   or_(Video.coach_id == coach_id, Video.coach_id.is_(None)))
            .order_by(Video.created_at.asc())
        )
        return list(res.all())


@store_errors
async def review_video(video_id: str, coach_id: str, feedback: str,
                       drills: list[str] | None = None) -> bool:
    feedback = (feedback or "").strip()
    if not feedback:
        raise EmptyComment("Feedback is empty")
    async with get_session() as ses:
        video = await ses.get(Video, video_id)
        if video is None or video.status != "pending":
            return False
        if video.coach_id not in (None, coach_id):
            return False
        video.coach_id = coach_id
        video.feedback = feedback
        video.drills = [d.strip() for d in (drills or []) if d.strip()] or None
        video.status = "reviewed"
        video.reviewed_at = utcnow()
        await ses.commit()
        return True


# ───────────────────────────────  CHAT  ───────────────────────────────────
@dataclass
class ChatThread:
    other: Profile
    last_message: str
    last_at: datetime
    unread: int


@store_errors
async def send_message(sender_id: str, recipient_id: str, text: str) -> ChatMessage:
    text = (text or "").strip()
    if not text:
        raise EmptyComment("Message is empty")
    async with get_session() as ses:
        msg = ChatMessage(sender_id=sender_id, recipient_id=recipient_id, content=text)
        ses.add(msg)
        await ses.commit()
        return msg


@store_errors
async def list_threads(user_id: str) -> list[ChatThread]:
    async with get_session() as ses:
        res = await ses.scalars(
            select(ChatMessage)
            .where(or_(ChatMessage.sender_id == user_id, ChatMessage.recipient_id == user_id))
            .order_by(ChatMessage.created_at.desc())
        )
        messages = list(res.all())

        latest: dict[str, ChatMessage] = {}
        unread: dict[str, int] = {}
        for m in messages:
            other = m.recipient_id if m.sender_id == user_id else m.sender_id
            latest.setdefault(other, m)
            if m.recipient_id == user_id and m.read_at is None:
                unread[other] = unread.get(other, 0) + 1

        profiles = {}
        if latest:
            found = await ses.scalars(select(Profile).where(Profile.id.in_(list(latest))))
            profiles = {p.id: p for p in found.all()}

    return [
        ChatThread(profiles[other], m.content, m.created_at, unread.get(other, 0))
        for other, m in latest.items()
        if other in profiles
    ]


@store_errors
async def open_thread(user_id: str, other_id: str, limit: int = 20) -> list[ChatMessage]:
    """Last messages between two people, oldest first; incoming ones become read."""
    between = or_(
        and_(ChatMessage.sender_id == user_id, ChatMessage.recipient_id == other_id),
        and_(ChatMessage.sender_id == other_id, ChatMessage.recipient_id == user_id),
    )
    async with get_session() as ses:
        res = await ses.scalars(
            select(ChatMessage).where(between).order_by(ChatMessage.created_at.desc()).limit(limit)
        )
        messages = list(res.all())
        await ses.execute(
            update(ChatMessage)
            .where(ChatMessage.sender_id == other_id, ChatMessage.recipient_id == user_id,
                   ChatMessage.read_at.is_(None))
            .values(read_at=utcnow())
        )
        await ses.commit()
    return list(reversed(messages))
