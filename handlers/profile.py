# handlers/profile.py
"""/profile: details, bookings, name/handicap edits and avatar upload.
/settings: notifications on or off."""
from __future__ import annotations

import logging
from html import escape
from typing import Awaitable, Callable

from aiogram import Router, F
from aiogram.filters import Command, StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton

from database.utils import (
    get_profile, update_profile, set_avatar, list_bookings, list_coach_bookings, cancel_booking,
)
from feed.errors import FringeError, StorageError, StoreError
from handlers.auth import signed_in
from services.session import SessionRegistry

profile_router = Router()


class ProfileState(StatesGroup):
    full_name = State()
    handicap  = State()
    avatar    = State()


PROFILE_KB = InlineKeyboardMarkup(
    inline_keyboard=[
        [InlineKeyboardButton(text="✏️ Name", callback_data="edit_name"),
         InlineKeyboardButton(text="🏌️ Handicap", callback_data="edit_handicap")],
        [InlineKeyboardButton(text="📸 Profile photo", callback_data="edit_avatar")],
    ]
)


# ─────────────────────────────── /profile ───────────────────────────────
@profile_router.message(Command("profile"))
async def cmd_profile(msg: Message, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return
    profile = await get_profile(session.identity.id)
    if profile is None:
        return await msg.answer("❌ Profile not found. /signup")

    handicap = f"{profile.handicap:g}" if profile.handicap is not None else "—"
    text = (
        f"👤 <b>{escape(profile.full_name)}</b>\n"
        f"{'Golf Pro' if profile.is_coach else 'Student'} · {escape(profile.email)}\n"
        f"Handicap: {handicap}"
    )
    await msg.answer(text, reply_markup=PROFILE_KB)

    if profile.is_coach:
        views = await list_coach_bookings(profile.id)
        if not views:
            return await msg.answer("📅 No lesson requests yet.")
        lines = ["📅 <b>Lesson requests</b>"]
        lines += [f"• {v.booking.date:%d %b %H:%M} · {escape(v.booking.lesson_type)} · "
                  f"{escape(v.student_name)}" for v in views]
        return await msg.answer("\n".join(lines))

    views = await list_bookings(profile.id)
    if not views:
        return await msg.answer("📅 No bookings yet. Find a coach → /coaches")
    for v in views:
        b = v.booking
        kb = None
        if b.status == "pending":
            kb = InlineKeyboardMarkup(inline_keyboard=[[
                InlineKeyboardButton(text="❌ Cancel", callback_data=f"cancel_booking:{b.id}")]])
        await msg.answer(
            f"📅 {b.date:%d %b %H:%M} · <b>{escape(b.lesson_type)}</b>\n"
            f"with {escape(v.coach_name)} · {b.duration} min · ${b.price} · {b.status}",
            reply_markup=kb,
        )


@profile_router.callback_query(F.data.startswith("cancel_booking:"))
async def cancel_booking_cb(cb: CallbackQuery, sessions: SessionRegistry):
    booking_id = cb.data.split(":", 1)[1]
    session = await sessions.get(cb.from_user.id)
    if session.identity is None:
        return await cb.answer("🔒 /signin", show_alert=True)
    try:
        done = await cancel_booking(booking_id, session.identity.id)
    except StoreError as e:
        logging.warning("Cancel booking %s failed: %s", booking_id, e)
        return await cb.answer("❌ Could not cancel, try again.", show_alert=True)
    if not done:
        return await cb.answer("Already cancelled.")
    await cb.message.edit_reply_markup(reply_markup=None)
    await cb.answer("Booking cancelled")


# ─────────────────────────────── name ───────────────────────────────
@profile_router.callback_query(F.data == "edit_name")
async def ask_name(cb: CallbackQuery, state: FSMContext):
    await cb.message.answer("✏️ New full name:")
    await state.set_state(ProfileState.full_name)
    await cb.answer()


@profile_router.callback_query(F.data == "edit_handicap")
async def ask_handicap(cb: CallbackQuery, state: FSMContext):
    await cb.message.answer("🏌️ Your handicap (e.g. 12.4):")
    await state.set_state(ProfileState.handicap)
    await cb.answer()


@profile_router.callback_query(F.data == "edit_avatar")
async def ask_avatar(cb: CallbackQuery, state: FSMContext):
    await cb.message.answer("📸 Send a photo for your profile:")
    await state.set_state(ProfileState.avatar)
    await cb.answer()


@profile_router.message(StateFilter(ProfileState), F.text.startswith("/"))
async def cancel_edit(msg: Message, state: FSMContext):
    await state.clear()
    await msg.answer("❌ Cancelled.")


@profile_router.message(StateFilter(ProfileState.full_name))
async def save_name(msg: Message, state: FSMContext, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return await state.clear()
    try:
        await update_profile(session.identity.id, full_name=(msg.text or "").strip()[:120])
    except StoreError as e:
        logging.warning("Name update for %s failed: %s", msg.from_user.id, e)
        await state.clear()
        return await msg.answer("❌ Could not save, try again.")
    except FringeError as e:
        return await msg.answer(f"❌ {e}")
    await state.clear()
    await msg.answer("✅ Name updated!")


@profile_router.message(StateFilter(ProfileState.handicap))
async def save_handicap(msg: Message, state: FSMContext, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return await state.clear()
    try:
        handicap = float((msg.text or "").replace(",", ".").strip())
    except ValueError:
        return await msg.answer("❌ A number please, e.g. 12.4")
    if not -10 <= handicap <= 54:
        return await msg.answer("❌ Between -10 and 54")
    try:
        await update_profile(session.identity.id, handicap=handicap)
    except StoreError as e:
        logging.warning("Handicap update for %s failed: %s", msg.from_user.id, e)
        await state.clear()
        return await msg.answer("❌ Could not save, try again.")
    await state.clear()
    await msg.answer("✅ Handicap updated!")


@profile_router.message(StateFilter(ProfileState.avatar), F.photo)
async def save_avatar(msg: Message, state: FSMContext, sessions: SessionRegistry,
                      avatars, read_image: Callable[[str], Awaitable[bytes]]):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return await state.clear()
    try:
        data = await read_image(msg.photo[-1].file_id)
        await set_avatar(session.identity.id, data, avatars)
    except (StorageError, StoreError) as e:
        logging.warning("Avatar upload for %s failed: %s", msg.from_user.id, e)
        await state.clear()
        return await msg.answer("❌ Failed to upload profile picture")
    await state.clear()
    await msg.answer("✅ Profile picture updated!")


@profile_router.message(StateFilter(ProfileState.avatar))
async def avatar_not_photo(msg: Message):
    await msg.answer("📸 Please send a photo.")


# ─────────────────────────────── /settings ───────────────────────────────
def settings_keyboard(enabled: bool) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text=f"🔔 Notifications: {'On' if enabled else 'Off'}",
                             callback_data="toggle_notifs")]])


@profile_router.message(Command("settings"))
async def cmd_settings(msg: Message, sessions: SessionRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return
    profile = await get_profile(session.identity.id)
    await msg.answer("⚙️ <b>Settings</b>", reply_markup=settings_keyboard(profile.notifications_enabled))


@profile_router.callback_query(F.data == "toggle_notifs")
async def toggle_notifs(cb: CallbackQuery, sessions: SessionRegistry):
    session = await sessions.get(cb.from_user.id)
    if session.identity is None:
        return await cb.answer("🔒 /signin", show_alert=True)
    profile = await get_profile(session.identity.id)
    enabled = not profile.notifications_enabled
    await update_profile(profile.id, notifications_enabled=enabled)
    await cb.message.edit_reply_markup(reply_markup=settings_keyboard(enabled))
    await cb.answer("🔔 On" if enabled else "🔕 Off")
