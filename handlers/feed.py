# handlers/feed.py
from __future__ import annotations

import logging
from html import escape

from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, StateFilter
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton

from config import FEED_PAGE_SIZE, MAX_IMAGES
from feed.controller import FeedController, FeedRegistry
from feed.errors import (
    FeedLoadFailed, FringeError, ImageTooLarge, LimitExceeded, MutationFailed,
    ProfileRequired, SubmitInProgress, UploadFailed, EmptyPost,
)
from feed.likes import LikeState
from feed.models import FeedPost, time_ago
from handlers.auth import signed_in
from services.session import SessionRegistry

feed_router = Router()


# ═════════════════════════  FSM  ═════════════════════════
class ComposeState(StatesGroup):
    writing = State()


# ═════════════  Keyboards  ═════════════
def post_inline_keyboard(post: FeedPost, *, pending: bool = False) -> InlineKeyboardMarkup:
    heart = "❤️" if post.liked_by_viewer else "🤍"
    if pending:
        heart += "…"
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text=f"{heart} {post.likes}", callback_data=f"like:{post.id}"),
        InlineKeyboardButton(text=f"💬 {post.comments}", callback_data=f"comments:{post.id}"),
    ]])


def composer_keyboard(n_images: int) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=f"📷 {n_images}/{MAX_IMAGES}", callback_data="compose_photos")],
        [InlineKeyboardButton(text="✅ Post", callback_data="compose_publish"),
         InlineKeyboardButton(text="❌ Cancel", callback_data="compose_cancel")],
    ])


# ═════════════  Rendering  ═════════════
def render_post(post: FeedPost) -> str:
    author = post.author
    name = escape(author.full_name) if author else "Unknown User"
    label = author.label if author else ""
    lines = [f"<b>{name}</b> · {label} · {time_ago(post.created_at)}"]
    if post.content:
        lines.append("")
        lines.append(escape(post.content))
    if post.image_urls:
        lines.append("")
        lines.append(" ".join(f"<a href='{escape(url)}'>📷 {i + 1}</a>"
                              for i, url in enumerate(post.image_urls[:MAX_IMAGES])))
    lines.append("")
    lines.append(f"{post.likes} likes • {post.comments} comments")
    return "\n".join(lines)


async def send_page(msg: Message, controller: FeedController, offset: int = 0):
    posts = controller.posts[offset:offset + FEED_PAGE_SIZE]
    if controller.error:
        await msg.answer(f"⚠️ {controller.error}")
    if not posts and offset == 0:
        return await msg.answer("No posts yet. Be the first → /post")
    for post in posts:
        await msg.answer(render_post(post), reply_markup=post_inline_keyboard(post),
                         disable_web_page_preview=True)
    nxt = offset + FEED_PAGE_SIZE
    if nxt < len(controller.posts):
        kb = InlineKeyboardMarkup(inline_keyboard=[[
            InlineKeyboardButton(text="⬇️ More", callback_data=f"more:{nxt}")]])
        await msg.answer(f"{nxt}/{len(controller.posts)}", reply_markup=kb)


async def redraw(message: Message | None, post: FeedPost | None, pending: bool = False):
    if message is None or post is None:
        return
    try:
        await message.edit_reply_markup(reply_markup=post_inline_keyboard(post, pending=pending))
    except TelegramBadRequest:          # « message is not modified »
        pass


# ═════════════  /feed  ═════════════
@feed_router.message(Command("feed"))
async def cmd_feed(msg: Message, sessions: SessionRegistry, feeds: FeedRegistry):
    session = await sessions.get(msg.from_user.id)
    controller = await feeds.get(session)
    try:
        await controller.refresh()
    except FeedLoadFailed:
        pass                            # previous posts stay, error is shown above them
    await send_page(msg, controller)


@feed_router.callback_query(F.data.startswith("more:"))
async def more_posts(cb: CallbackQuery, sessions: SessionRegistry, feeds: FeedRegistry):
    offset = int(cb.data.split(":", 1)[1])
    session = await sessions.get(cb.from_user.id)
    controller = await feeds.get(session)
    await cb.answer()
    await send_page(cb.message, controller, offset)


# ═════════════  Like ❤️  ═════════════
@feed_router.callback_query(F.data.startswith("like:"))
async def like_post(cb: CallbackQuery, sessions: SessionRegistry, feeds: FeedRegistry):
    post_id = cb.data.split(":", 1)[1]
    session = await sessions.get(cb.from_user.id)
    if session.identity is None:
        return await cb.answer("🔒 Sign in to like posts → /signin", show_alert=True)

    controller = await feeds.get(session)
    if controller.find(post_id) is None:
        await controller.reload()
    settle = controller.toggle_like(post_id)
    if settle is None:
        return await cb.answer("⏳ Hold on…")

    # optimistic state is already applied
    await redraw(cb.message, controller.find(post_id), pending=True)
    try:
        await settle
    except MutationFailed as e:
        await redraw(cb.message, controller.find(post_id))
        return await cb.answer(f"❌ {e}", show_alert=True)

    await redraw(cb.message, controller.find(post_id))
    await cb.answer("❤️" if controller.like_state(post_id) is LikeState.LIKED else "🤍")


# ═════════════  Composer  ═════════════
@feed_router.message(Command("post"))
async def cmd_post(msg: Message, state: FSMContext, sessions: SessionRegistry, feeds: FeedRegistry):
    session = await sessions.get(msg.from_user.id)
    if not await signed_in(session, msg.answer):
        return
    controller = await feeds.get(session)
    controller.composer.clear()
    await msg.answer(
        "🏌️ Share your golf journey…\n"
        f"Send text and up to {MAX_IMAGES} photos (5MB max each), then press ✅ Post.",
        reply_markup=composer_keyboard(0),
    )
    await state.set_state(ComposeState.writing)


@feed_router.message(StateFilter(ComposeState.writing), F.text.startswith("/"))
async def cancel_compose_cmd(msg: Message, state: FSMContext, sessions: SessionRegistry,
                             feeds: FeedRegistry):
    session = await sessions.get(msg.from_user.id)
    (await feeds.get(session)).composer.clear()
    await state.clear()
    await msg.answer("❌ Post discarded.")


@feed_router.message(StateFilter(ComposeState.writing), F.photo)
async def compose_photo(msg: Message, sessions: SessionRegistry, feeds: FeedRegistry):
    session = await sessions.get(msg.from_user.id)
    composer = (await feeds.get(session)).composer
    photo = msg.photo[-1]                           # largest size
    try:
        composer.add_image(photo.file_id, photo.file_size)
    except LimitExceeded as e:
        return await msg.answer(f"⚠️ Maximum Images\n{e}")
    except ImageTooLarge as e:
        return await msg.answer(f"⚠️ Image too large\n{e}")
    except SubmitInProgress as e:
        return await msg.answer(f"⏳ {e}")
    if msg.caption:
        composer.text = msg.caption
    await msg.answer(f"📷 {len(composer.images)}/{MAX_IMAGES} photos",
                     reply_markup=composer_keyboard(len(composer.images)))


@feed_router.message(StateFilter(ComposeState.writing), F.text)
async def compose_text(msg: Message, sessions: SessionRegistry, feeds: FeedRegistry):
    session = await sessions.get(msg.from_user.id)
    composer = (await feeds.get(session)).composer
    composer.text = msg.text
    await msg.answer("✍️ Text saved.", reply_markup=composer_keyboard(len(composer.images)))


@feed_router.callback_query(StateFilter(ComposeState.writing), F.data == "compose_photos")
async def compose_photos(cb: CallbackQuery, sessions: SessionRegistry, feeds: FeedRegistry):
    session = await sessions.get(cb.from_user.id)
    composer = (await feeds.get(session)).composer
    if composer.submitting:
        return await cb.answer("⏳ Your post is being published.", show_alert=True)
    if not composer.images:
        return await cb.answer("Send photos as messages to attach them.", show_alert=True)
    rows = [[InlineKeyboardButton(text=f"🗑 Remove photo {i + 1}", callback_data=f"compose_rm:{i}")]
            for i in range(len(composer.images))]
    await cb.message.answer("Staged photos:", reply_markup=InlineKeyboardMarkup(inline_keyboard=rows))
    await cb.answer()


@feed_router.callback_query(StateFilter(ComposeState.writing), F.data.startswith("compose_rm:"))
async def compose_remove(cb: CallbackQuery, sessions: SessionRegistry, feeds: FeedRegistry):
    index = int(cb.data.split(":", 1)[1])
    session = await sessions.get(cb.from_user.id)
    composer = (await feeds.get(session)).composer
    try:
        removed = composer.remove_image(index)
    except SubmitInProgress as e:
        return await cb.answer(f"⏳ {e}", show_alert=True)
    if not removed:
        return await cb.answer("Already removed.")
    await cb.message.edit_text(f"📷 {len(composer.images)}/{MAX_IMAGES} photos",
                               reply_markup=composer_keyboard(len(composer.images)))
    await cb.answer("🗑")


@feed_router.callback_query(StateFilter(ComposeState.writing), F.data == "compose_cancel")
async def compose_cancel(cb: CallbackQuery, state: FSMContext, sessions: SessionRegistry,
                         feeds: FeedRegistry):
    session = await sessions.get(cb.from_user.id)
    (await feeds.get(session)).composer.clear()
    await state.clear()
    await cb.message.edit_text("❌ Post discarded.")
    await cb.answer()


@feed_router.callback_query(StateFilter(ComposeState.writing), F.data == "compose_publish")
async def compose_publish(cb: CallbackQuery, state: FSMContext, sessions: SessionRegistry,
                          feeds: FeedRegistry):
    session = await sessions.get(cb.from_user.id)
    controller = await feeds.get(session)
    if controller.composer.submitting:
        return await cb.answer("⏳ Your post is being published.", show_alert=True)
    if not controller.composer.can_submit:
        return await cb.answer("Write something or add a photo first.", show_alert=True)
    await cb.answer("⏳ Posting…")
    try:
        await controller.composer.submit()
    except SubmitInProgress as e:
        return await cb.message.answer(f"⏳ {e}")
    except (EmptyPost, ProfileRequired) as e:
        return await cb.message.answer(f"⚠️ {e}")
    except (UploadFailed, MutationFailed) as e:
        logging.warning("Post by %s failed: %s", cb.from_user.id, e)
        return await cb.message.answer(f"❌ {e}. Nothing was published, try again.")
    except FringeError as e:
        logging.warning("Post by %s failed: %s", cb.from_user.id, e)
        return await cb.message.answer(f"❌ {e}")

    await state.clear()
    await cb.message.edit_text("✅ Posted!")
    if controller.posts:
        newest = controller.posts[0]
        await cb.message.answer(render_post(newest), reply_markup=post_inline_keyboard(newest),
                                disable_web_page_preview=True)
