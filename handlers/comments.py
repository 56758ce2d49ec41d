from __future__ import annotations

import logging
from html import escape

from aiogram import Router, F
from aiogram.filters import StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message, InlineKeyboardMarkup, InlineKeyboardButton

from feed.controller import FeedRegistry
from feed.errors import EmptyComment, FeedLoadFailed, MutationFailed, ProfileRequired
from feed.models import FeedComment, time_ago
from handlers.auth import signed_in
from services.session import SessionRegistry

comments_router = Router()

SHOWN_COMMENTS = 15


# ───── FSM
class CommentState(StatesGroup):
    waiting_for_text = State()


# ───── Helpers
def render_comments(comments: list[FeedComment]) -> str:
    if not comments:
        return "💬 No comments yet. Be the first to comment!"
    lines = [f"💬 <b>Comments</b> ({len(comments)})", ""]
    for c in comments[:SHOWN_COMMENTS]:
        name = escape(c.author.full_name) if c.author else "Unknown User"
        lines.append(f"<b>{name}</b> · {time_ago(c.created_at)}\n{escape(c.content)}\n")
    return "\n".join(lines)


def comment_keyboard(post_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="✍️ Add a comment", callback_data=f"comment:{post_id}")]])


# ───── 💬 button under a post
@comments_router.callback_query(F.data.startswith("comments:"))
async def show_comments(cb: CallbackQuery, sessions: SessionRegistry, feeds: FeedRegistry):
    post_id = cb.data.split(":", 1)[1]
    session = await sessions.get(cb.from_user.id)
    controller = await feeds.get(session)
    try:
        thread = await controller.open_comments(post_id)
    except FeedLoadFailed as e:
        logging.error("Comments of %s failed to load: %s", post_id, e.__cause__ or e)
        return await cb.answer(f"❌ {e}", show_alert=True)
    await cb.answer()
    await cb.message.answer(render_comments(thread.comments), reply_markup=comment_keyboard(post_id))


# ───── ✍️ Add a comment
@comments_router.callback_query(F.data.startswith("comment:"))
async def open_comment(cb: CallbackQuery, state: FSMContext, sessions: SessionRegistry):
    post_id = cb.data.split(":", 1)[1]
    session = await sessions.get(cb.from_user.id)
    if session.identity is None:
        return await cb.answer("🔒 Sign in to comment → /signin", show_alert=True)
    await cb.answer()
    await cb.message.answer("✍️ Add a comment…")
    await state.set_state(CommentState.waiting_for_text)
    await state.update_data(post_id=post_id)


# ───── cancel via command
@comments_router.message(StateFilter(CommentState.waiting_for_text), F.text.startswith("/"))
async def cancel_comment(msg: Message, state: FSMContext):
    await state.clear()
    await msg.answer("❌ Cancelled.")


# ───── save the comment
@comments_router.message(StateFilter(CommentState.waiting_for_text))
async def save_comment(msg: Message, state: FSMContext, sessions: SessionRegistry,
                       feeds: FeedRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return await state.clear()

    data = await state.get_data()
    post_id = data.get("post_id")
    controller = await feeds.get(session)
    try:
        await controller.post_comment(post_id, msg.text or "")
    except EmptyComment:
        return await msg.answer("❌ The comment is empty, write something:")
    except ProfileRequired as e:
        await state.clear()
        return await msg.answer(f"⚠️ {e}")
    except MutationFailed as e:
        await state.clear()
        return await msg.answer(f"❌ {e}")

    await state.clear()
    await msg.answer(render_comments(controller.thread.comments), reply_markup=comment_keyboard(post_id))
