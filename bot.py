# bot.py
from __future__ import annotations

import asyncio, logging

from aiogram import Bot, Dispatcher, F
from aiogram.client.default import DefaultBotProperties
from aiogram.enums.parse_mode import ParseMode
from aiogram.exceptions import TelegramForbiddenError
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand, BotCommandScopeDefault, Message
from aiohttp import web
import aiocron

from config import (
    TOKEN, ADMINS, WEB_PORT, POST_IMAGES_BUCKET, PROFILES_BUCKET,
    LIVE_RELOAD_DELAY, SWING_THOUGHT_CRON,
)
from database.database import engine, init_db
from database.store import FeedStore
from database.utils import notification_recipients
from feed.controller import FeedRegistry
from feed.errors import StorageError
from services.auth import AuthService
from services.session import SessionRegistry
from services.storage import Bucket
from services.swing_thoughts import thought_for

from handlers import (
    auth_router, feed_router, comments_router, coaches_router,
    profile_router, videos_router, chat_router, help_router,
)

# ───────────────────────────  Bot / Dispatcher
logging.basicConfig(level=logging.INFO)

bot = Bot(TOKEN, default=DefaultBotProperties(parse_mode=ParseMode.HTML))


async def read_image(file_id: str) -> bytes:
    """Bytes of a photo the user sent, fetched from Telegram."""
    buf = await bot.download(file_id)
    return buf.getvalue()


auth     = AuthService()
sessions = SessionRegistry(auth)
buckets  = {name: Bucket(name) for name in (POST_IMAGES_BUCKET, PROFILES_BUCKET)}
feeds    = FeedRegistry(FeedStore(), buckets[POST_IMAGES_BUCKET], read_image,
                        reload_delay=LIVE_RELOAD_DELAY)

# everything below is injected into handlers by keyword
dp = Dispatcher(
    storage=MemoryStorage(),
    auth=auth,
    sessions=sessions,
    feeds=feeds,
    avatars=buckets[PROFILES_BUCKET],
    read_image=read_image,
)
for r in (
    auth_router, feed_router, comments_router, coaches_router,
    profile_router, videos_router, chat_router, help_router,
):
    dp.include_router(r)

# ───────────────────────────  /commands
DEFAULT_COMMANDS = [
    BotCommand(command="start",    description="⛳ Home"),
    BotCommand(command="feed",     description="📰 Community feed"),
    BotCommand(command="post",     description="✍️ New post"),
    BotCommand(command="coaches",  description="🔍 Find a coach"),
    BotCommand(command="videos",   description="🎬 Swing videos"),
    BotCommand(command="chats",    description="💬 Messages"),
    BotCommand(command="profile",  description="👤 Profile"),
    BotCommand(command="help",     description="❓ Help"),
]
async def set_bot_commands(b: Bot):
    await b.set_my_commands(DEFAULT_COMMANDS, BotCommandScopeDefault())


# =================================================================
# Cron: daily swing thought
# =================================================================

async def swing_thought_job() -> int:
    text = f"☀️ <b>Swing thought of the day</b>\n\n<i>{thought_for()}</i>"
    sent = 0
    for profile in await notification_recipients():
        try:
            await bot.send_message(profile.telegram_id, text)
            sent += 1
        except TelegramForbiddenError as e:
            logging.debug("Swing thought DM fail %s: %s", profile.telegram_id, e)
    logging.info("Swing thought sent to %d users", sent)
    return sent


@aiocron.crontab(SWING_THOUGHT_CRON, start=False)
async def swing_thought_cron():
    await swing_thought_job()


@dp.message(F.text == "/cron_thought")
async def _cron_thought(msg: Message):
    if msg.from_user.id not in ADMINS:
        return
    sent = await swing_thought_job()
    await msg.answer(f"✅ Swing thought sent to {sent} users (manual).")


# ───────────────────────────  aiohttp: public storage URLs
async def serve_object(request: web.Request):
    bucket = buckets.get(request.match_info["bucket"])
    if bucket is None:
        raise web.HTTPNotFound()
    path = request.match_info["path"]
    try:
        body = await bucket.download(path)
    except StorageError:
        raise web.HTTPNotFound()
    meta = bucket.metadata(path)
    return web.Response(
        body=body,
        content_type=meta.get("content_type", "application/octet-stream"),
        headers={"Cache-Control": f"max-age={meta.get('cache_control', '3600')}"},
    )


app = web.Application()
app.add_routes([web.get("/storage/{bucket}/{path:.+}", serve_object)])

async def start_web():
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", WEB_PORT)
    await site.start()
    return runner

# ───────────────────────────  Main
async def main():
    await init_db()
    runner = await start_web()
    swing_thought_cron.start()
    await set_bot_commands(bot)
    try:
        await dp.start_polling(bot)
    finally:
        swing_thought_cron.stop()
        await feeds.close()
        sessions.close()
        await runner.cleanup()
        await engine.dispose()
        await bot.session.close()

if __name__ == "__main__":
    asyncio.run(main())
