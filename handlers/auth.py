from __future__ import annotations

# handlers/auth.py
import logging

from aiogram import Router, F
from aiogram.filters import Command, StateFilter
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton

from feed.controller import FeedRegistry
from feed.errors import AuthError, StoreError
from services.auth import AuthService
from services.session import SessionContext, SessionRegistry
from services.swing_thoughts import thought_for

auth_router = Router()


# ─── FSM ────────────────────────────────────────────────
class SignUpState(StatesGroup):
    full_name = State()
    email     = State()
    password  = State()
    role      = State()


class SignInState(StatesGroup):
    email    = State()
    password = State()


WELCOME_KB = InlineKeyboardMarkup(
    inline_keyboard=[
        [InlineKeyboardButton(text="🔑 Sign in", callback_data="signin")],
        [InlineKeyboardButton(text="🏌️ Create account", callback_data="signup")],
    ]
)

ROLE_KB = InlineKeyboardMarkup(
    inline_keyboard=[
        [InlineKeyboardButton(text="🎓 Student", callback_data="role:student"),
         InlineKeyboardButton(text="⛳ Coach", callback_data="role:coach")],
    ]
)


# ─── shared guard ───────────────────────────────────────
async def signed_in(session: SessionContext, reply_fn) -> bool:
    if session.identity is None:
        await reply_fn("🔒 Sign in to continue → /signin")
        return False
    return True


async def _forget_password(msg: Message) -> None:
    try:
        await msg.delete()
    except TelegramBadRequest:
        pass


# ─────────────────────────────────────────────────────── /start
@auth_router.message(Command("start"))
async def cmd_start(msg: Message, state: FSMContext, sessions: SessionRegistry):
    await state.clear()
    session = await sessions.get(msg.from_user.id)
    if session.identity is None:
        return await msg.answer(
            "⛳ <b>Welcome to fringe</b>\n"
            "Connect with the Best. Play your Best.",
            reply_markup=WELCOME_KB,
        )
    first = session.identity.full_name.split(" ")[0]
    await msg.answer(
        f"👋 Welcome back, {first}!\nReady for your next lesson?\n\n"
        f"💭 <i>{thought_for()}</i>\n\n/help for commands"
    )


# ─────────────────────────────────────────────────────── sign up
@auth_router.callback_query(F.data == "signup")
async def signup_cb(cb: CallbackQuery, state: FSMContext):
    await cb.message.answer("✏️ Your full name:")
    await state.set_state(SignUpState.full_name)
    await cb.answer()


@auth_router.message(Command("signup"))
async def cmd_signup(msg: Message, state: FSMContext):
    await msg.answer("✏️ Your full name:")
    await state.set_state(SignUpState.full_name)


# /command during the form cancels it
@auth_router.message(StateFilter(SignUpState, SignInState), F.text.startswith("/"))
async def cancel_form(msg: Message, state: FSMContext):
    await state.clear()
    await msg.answer("Cancelled. /start to begin again.")


@auth_router.message(StateFilter(SignUpState.full_name))
async def signup_name(msg: Message, state: FSMContext):
    name = (msg.text or "").strip()
    if not name or len(name) > 120:
        return await msg.answer("❌ 1-120 characters please:")
    await state.update_data(full_name=name)
    await msg.answer("📧 Email:")
    await state.set_state(SignUpState.email)


@auth_router.message(StateFilter(SignUpState.email))
async def signup_email(msg: Message, state: FSMContext):
    await state.update_data(email=(msg.text or "").strip())
    await msg.answer("🔒 Password (at least 6 characters). I delete it from the chat right away:")
    await state.set_state(SignUpState.password)


@auth_router.message(StateFilter(SignUpState.password))
async def signup_password(msg: Message, state: FSMContext):
    password = msg.text or ""
    await _forget_password(msg)
    await state.update_data(password=password)
    await msg.answer("Are you a student or a coach?", reply_markup=ROLE_KB)
    await state.set_state(SignUpState.role)


@auth_router.callback_query(StateFilter(SignUpState.role), F.data.startswith("role:"))
async def signup_role(cb: CallbackQuery, state: FSMContext, auth: AuthService):
    data = await state.get_data()
    role = cb.data.split(":", 1)[1]
    try:
        identity = await auth.sign_up(data.get("email", ""), data.get("password", ""),
                                      data.get("full_name", ""), role,
                                      telegram_id=cb.from_user.id)
    except AuthError as e:
        await state.clear()
        await cb.answer()
        return await cb.message.answer(f"❌ {e}\n/signup to try again.")
    except StoreError as e:
        logging.warning("Sign up failed for %s: %s", cb.from_user.id, e)
        await state.clear()
        await cb.answer()
        return await cb.message.answer("❌ An unexpected error occurred. Try again later.")

    await state.clear()
    await cb.answer()
    await cb.message.edit_text(f"✅ Account created. Welcome, {identity.full_name}!\n/help for commands")


# ─────────────────────────────────────────────────────── sign in
@auth_router.callback_query(F.data == "signin")
async def signin_cb(cb: CallbackQuery, state: FSMContext):
    await cb.message.answer("📧 Email:")
    await state.set_state(SignInState.email)
    await cb.answer()


@auth_router.message(Command("signin"))
async def cmd_signin(msg: Message, state: FSMContext):
    await msg.answer("📧 Email:")
    await state.set_state(SignInState.email)


@auth_router.message(StateFilter(SignInState.email))
async def signin_email(msg: Message, state: FSMContext):
    await state.update_data(email=(msg.text or "").strip())
    await msg.answer("🔒 Password:")
    await state.set_state(SignInState.password)


@auth_router.message(StateFilter(SignInState.password))
async def signin_password(msg: Message, state: FSMContext, auth: AuthService):
    password = msg.text or ""
    await _forget_password(msg)
    data = await state.get_data()
    await state.clear()
    try:
        identity = await auth.sign_in(data.get("email", ""), password, telegram_id=msg.from_user.id)
    except AuthError as e:
        return await msg.answer(f"❌ {e}\n/signin to try again.")
    except StoreError as e:
        logging.warning("Sign in failed for %s: %s", msg.from_user.id, e)
        return await msg.answer("❌ An unexpected error occurred. Try again later.")
    await msg.answer(f"✅ Signed in as {identity.full_name}.\n/feed · /coaches · /profile")


# ─────────────────────────────────────────────────────── sign out
@auth_router.message(Command("signout"))
async def cmd_signout(msg: Message, state: FSMContext, auth: AuthService, feeds: FeedRegistry):
    await state.clear()
    try:
        await auth.sign_out(msg.from_user.id)
    except StoreError as e:
        logging.warning("Sign out failed for %s: %s", msg.from_user.id, e)
        return await msg.answer("❌ Could not sign out, try again.")
    await feeds.drop(msg.from_user.id)
    await msg.answer("👋 Signed out. /signin to come back.")
