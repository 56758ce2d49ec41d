from __future__ import annotations

import logging
from html import escape

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton

from config import LESSON_TYPES
from database.utils import list_coaches, get_profile, create_booking
from feed.errors import BookingError, StoreError
from handlers.auth import signed_in
from services.session import SessionRegistry

coaches_router = Router()


def coach_card(coach) -> str:
    handicap = f"\nHandicap: {coach.handicap:g}" if coach.handicap is not None else ""
    return f"⛳ <b>{escape(coach.full_name)}</b>\nGolf Pro{handicap}"


def lessons_keyboard(coach_id: str) -> InlineKeyboardMarkup:
    rows = [
        [InlineKeyboardButton(
            text=f"{lesson['name']} · {lesson['duration']} min · ${lesson['price']}",
            callback_data=f"book:{coach_id}:{i}",
        )]
        for i, lesson in enumerate(LESSON_TYPES)
    ]
    rows.append([InlineKeyboardButton(text="💬 Message", callback_data=f"chat:{coach_id}")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


# ─────────────────────────────── /coaches [query] ───────────────────────────────
@coaches_router.message(Command("coaches"))
async def cmd_coaches(msg: Message, command: CommandObject):
    try:
        coaches = await list_coaches(command.args)
    except StoreError as e:
        logging.warning("Coach search failed: %s", e)
        return await msg.answer("❌ Could not load coaches, try again.")
    if not coaches:
        return await msg.answer("No coaches found.")
    kb = InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=f"⛳ {c.full_name}", callback_data=f"coach:{c.id}")]
        for c in coaches
    ])
    await msg.answer("🔍 Find a coach:", reply_markup=kb)


@coaches_router.callback_query(F.data.startswith("coach:"))
async def show_coach(cb: CallbackQuery):
    coach_id = cb.data.split(":", 1)[1]
    coach = await get_profile(coach_id)
    if coach is None or not coach.is_coach:
        return await cb.answer("Coach not found", show_alert=True)
    await cb.answer()
    await cb.message.answer(coach_card(coach), reply_markup=lessons_keyboard(coach.id))


# ─────────────────────────────── booking ───────────────────────────────
@coaches_router.callback_query(F.data.startswith("book:"))
async def book_lesson(cb: CallbackQuery, sessions: SessionRegistry):
    _, coach_id, index = cb.data.split(":", 2)
    session = await sessions.get(cb.from_user.id)
    if not await signed_in(session, cb.message.answer):
        return await cb.answer()
    try:
        booking = await create_booking(session.identity.id, coach_id, int(index))
    except BookingError as e:
        return await cb.answer(f"❌ {e}", show_alert=True)
    except StoreError as e:
        logging.warning("Booking by %s failed: %s", cb.from_user.id, e)
        return await cb.answer("❌ Booking failed, try again.", show_alert=True)

    await cb.answer("✅ Booked")
    await cb.message.answer(
        f"📅 <b>{escape(booking.lesson_type)}</b> requested\n"
        f"{booking.duration} min · ${booking.price} (paid at the lesson)\n"
        "Status: pending. See /profile for your bookings."
    )
