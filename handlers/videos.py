from __future__ import annotations

import logging
from html import escape

from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from aiogram.filters import Command, StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton

from database.utils import (
    create_video, get_profile, get_video, list_videos, pending_reviews, review_video,
)
from feed.errors import EmptyComment, StoreError, VideoTooLarge, VideoTooLong
from handlers.auth import signed_in
from services.session import SessionRegistry
from services.videos import UploadProgress, check_video

videos_router = Router()


class VideoState(StatesGroup):
    waiting_for_video = State()


class ReviewState(StatesGroup):
    feedback = State()
    drills   = State()


def progress_bar(percent: int) -> str:
    filled = percent // 10
    return f"⏫ Uploading… [{'█' * filled}{'░' * (10 - filled)}] {percent}%"


def video_detail(video) -> str:
    lines = [f"🎬 <b>{escape(video.title)}</b>",
             f"Status: {'✅ reviewed' if video.status == 'reviewed' else '⏳ pending'}"]
    if video.feedback:
        lines += ["", "<b>Coach feedback</b>", escape(video.feedback)]
    if video.drills:
        lines += ["", "<b>Recommended drills</b>"]
        lines += [f"• {escape(d)}" for d in video.drills]
    return "\n".join(lines)


# ─────────────────────────────── /videos ───────────────────────────────
@videos_router.message(Command("videos"))
async def cmd_videos(msg: Message, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return
    videos = await list_videos(session.identity.id)
    rows = [[InlineKeyboardButton(
        text=f"{'✅' if v.status == 'reviewed' else '⏳'} {v.title}", callback_data=f"video:{v.id}")]
        for v in videos]
    rows.append([InlineKeyboardButton(text="📤 Upload a swing video", callback_data="video_upload")])
    text = "🎬 <b>Your swing videos</b>" if videos else "🎬 No videos yet. Get feedback from a pro!"
    await msg.answer(text, reply_markup=InlineKeyboardMarkup(inline_keyboard=rows))


@videos_router.callback_query(F.data == "video_upload")
async def ask_video(cb: CallbackQuery, state: FSMContext):
    await cb.message.answer("📹 Send your swing video (max 60 seconds, 100MB). "
                            "The caption becomes the title.")
    await state.set_state(VideoState.waiting_for_video)
    await cb.answer()


@videos_router.message(StateFilter(VideoState.waiting_for_video), F.text.startswith("/"))
async def cancel_video(msg: Message, state: FSMContext):
    await state.clear()
    await msg.answer("❌ Cancelled.")


@videos_router.message(StateFilter(VideoState.waiting_for_video), F.video)
async def receive_video(msg: Message, state: FSMContext, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return await state.clear()
    video = msg.video
    try:
        check_video(video.duration, video.file_size)
    except (VideoTooLong, VideoTooLarge) as e:
        return await msg.answer(f"⚠️ {e}")

    status = await msg.answer(progress_bar(0))

    async def show(percent: int):
        try:
            await status.edit_text(progress_bar(percent))
        except TelegramBadRequest:
            pass

    await UploadProgress().run(show)
    try:
        row = await create_video(session.identity.id, msg.caption or "Swing video",
                                 video.file_id, duration=video.duration)
    except StoreError as e:
        logging.warning("Video save for %s failed: %s", msg.from_user.id, e)
        await state.clear()
        return await status.edit_text("❌ Upload failed, try again.")
    await state.clear()
    kb = InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="🎬 Open", callback_data=f"video:{row.id}")]])
    await status.edit_text("✅ Video uploaded! A coach will review it soon.", reply_markup=kb)


@videos_router.message(StateFilter(VideoState.waiting_for_video))
async def not_a_video(msg: Message):
    await msg.answer("📹 Please send a video.")


@videos_router.callback_query(F.data.startswith("video:"))
async def show_video(cb: CallbackQuery, sessions: SessionRegistry):
    video = await get_video(cb.data.split(":", 1)[1])
    session = await sessions.get(cb.from_user.id)
    identity = session.identity
    visible = video is not None and identity is not None and (
        identity.id in (video.student_id, video.coach_id)
        or (identity.is_coach and video.status == "pending")
    )
    if not visible:
        return await cb.answer("Video not found", show_alert=True)
    await cb.answer()
    await cb.message.answer_video(video.file_ref)
    await cb.message.answer(video_detail(video))


# ─────────────────────────────── /reviews (coaches) ───────────────────────────────
@videos_router.message(Command("reviews"))
async def cmd_reviews(msg: Message, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return
    if not session.identity.is_coach:
        return await msg.answer("⛔ Only coaches review videos.")
    videos = await pending_reviews(session.identity.id)
    if not videos:
        return await msg.answer("🎉 No videos waiting for review.")
    for v in videos:
        kb = InlineKeyboardMarkup(inline_keyboard=[[
            InlineKeyboardButton(text="📝 Review", callback_data=f"review:{v.id}")]])
        await msg.answer_video(v.file_ref, caption=f"🎬 {escape(v.title)}", reply_markup=kb)


@videos_router.callback_query(F.data.startswith("review:"))
async def start_review(cb: CallbackQuery, state: FSMContext, sessions: SessionRegistry):
    session = await sessions.get(cb.from_user.id)
    if session.identity is None or not session.identity.is_coach:
        return await cb.answer("⛔ Only coaches review videos.", show_alert=True)
    await state.set_state(ReviewState.feedback)
    await state.update_data(video_id=cb.data.split(":", 1)[1])
    await cb.message.answer("📝 Your feedback:")
    await cb.answer()


@videos_router.message(StateFilter(ReviewState), F.text.startswith("/"))
async def cancel_review(msg: Message, state: FSMContext):
    await state.clear()
    await msg.answer("❌ Cancelled.")


@videos_router.message(StateFilter(ReviewState.feedback))
async def review_feedback(msg: Message, state: FSMContext):
    feedback = (msg.text or "").strip()
    if not feedback:
        return await msg.answer("❌ Feedback is empty, write something:")
    await state.update_data(feedback=feedback)
    await state.set_state(ReviewState.drills)
    await msg.answer("🏋️ Drills, one per line (or «-» for none):")


@videos_router.message(StateFilter(ReviewState.drills))
async def review_drills(msg: Message, state: FSMContext, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    data = await state.get_data()
    await state.clear()
    text = (msg.text or "").strip()
    drills = [] if text == "-" else text.splitlines()
    try:
        done = await review_video(data["video_id"], session.identity.id, data["feedback"], drills)
    except EmptyComment as e:
        return await msg.answer(f"❌ {e}")
    except StoreError as e:
        logging.warning("Review of %s failed: %s", data["video_id"], e)
        return await msg.answer("❌ Could not save the review, try again.")
    if not done:
        return await msg.answer("ℹ️ This video was already reviewed.")
    await msg.answer("✅ Review sent!")

    video = await get_video(data["video_id"])
    student = await get_profile(video.student_id)
    if student and student.telegram_id and student.notifications_enabled:
        kb = InlineKeyboardMarkup(inline_keyboard=[[
            InlineKeyboardButton(text="🎬 Open", callback_data=f"video:{video.id}")]])
        try:
            await msg.bot.send_message(student.telegram_id,
                                       f"📝 Your video «{escape(video.title)}» was reviewed!",
                                       reply_markup=kb)
        except TelegramForbiddenError:
            pass
