from __future__ import annotations

import logging
from html import escape

from aiogram import Router, F
from aiogram.exceptions import TelegramForbiddenError
from aiogram.filters import Command, StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton

from database.utils import get_profile, list_threads, open_thread, send_message
from feed.errors import EmptyComment, StoreError
from feed.models import time_ago
from handlers.auth import signed_in
from services.session import SessionRegistry

chat_router = Router()


class ChatState(StatesGroup):
    waiting_for_text = State()


def reply_keyboard(other_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="✍️ Reply", callback_data=f"chat_reply:{other_id}")]])


# ─────────────────────────────── /chats ───────────────────────────────
@chat_router.message(Command("chats"))
async def cmd_chats(msg: Message, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return
    threads = await list_threads(session.identity.id)
    if not threads:
        return await msg.answer("💬 No conversations yet. Message a coach from /coaches")
    rows = []
    for t in threads:
        unread = f" 🔵{t.unread}" if t.unread else ""
        rows.append([InlineKeyboardButton(
            text=f"{t.other.full_name} · {time_ago(t.last_at)}{unread}",
            callback_data=f"chat:{t.other.id}")])
    await msg.answer("💬 <b>Messages</b>", reply_markup=InlineKeyboardMarkup(inline_keyboard=rows))


@chat_router.callback_query(F.data.startswith("chat:"))
async def show_thread(cb: CallbackQuery, sessions: SessionRegistry):
    other_id = cb.data.split(":", 1)[1]
    session = await sessions.get(cb.from_user.id)
    if session.identity is None:
        return await cb.answer("🔒 Sign in to chat → /signin", show_alert=True)
    other = await get_profile(other_id)
    if other is None or other.id == session.identity.id:
        return await cb.answer("Conversation not found", show_alert=True)
    messages = await open_thread(session.identity.id, other_id)
    lines = [f"💬 <b>{escape(other.full_name)}</b>", ""]
    for m in messages:
        who = "You" if m.sender_id == session.identity.id else escape(other.first_name)
        lines.append(f"<b>{who}</b> · {time_ago(m.created_at)}\n{escape(m.content)}\n")
    if not messages:
        lines.append("No messages yet. Say hello!")
    await cb.answer()
    await cb.message.answer("\n".join(lines), reply_markup=reply_keyboard(other_id))


@chat_router.callback_query(F.data.startswith("chat_reply:"))
async def open_reply(cb: CallbackQuery, state: FSMContext):
    await state.set_state(ChatState.waiting_for_text)
    await state.update_data(other_id=cb.data.split(":", 1)[1])
    await cb.message.answer("✍️ Type a message…")
    await cb.answer()


@chat_router.message(StateFilter(ChatState.waiting_for_text), F.text.startswith("/"))
async def cancel_reply(msg: Message, state: FSMContext):
    await state.clear()
    await msg.answer("❌ Cancelled.")


@chat_router.message(StateFilter(ChatState.waiting_for_text))
async def save_reply(msg: Message, state: FSMContext, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return await state.clear()
    other_id = (await state.get_data()).get("other_id")
    try:
        await send_message(session.identity.id, other_id, msg.text or "")
    except EmptyComment:
        return await msg.answer("❌ The message is empty.")
    except StoreError as e:
        logging.warning("Message from %s failed: %s", msg.from_user.id, e)
        await state.clear()
        return await msg.answer("❌ Message not sent, try again.")
    await state.clear()
    await msg.answer("✅ Sent")

    other = await get_profile(other_id)
    if other and other.telegram_id and other.notifications_enabled:
        try:
            await msg.bot.send_message(
                other.telegram_id,
                f"💬 New message from <b>{escape(session.identity.full_name)}</b>",
                reply_markup=InlineKeyboardMarkup(inline_keyboard=[[
                    InlineKeyboardButton(text="Open", callback_data=f"chat:{session.identity.id}")]]),
            )
        except TelegramForbiddenError:
            pass
