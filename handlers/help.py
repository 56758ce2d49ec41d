from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from services.swing_thoughts import thought_for

help_router = Router()


@help_router.message(Command("help"))
async def cmd_help(msg: Message):
    await msg.answer(
        "/feed – community feed\n"
        "/post – share a post\n"
        "/coaches – find a coach\n"
        "/videos – swing video reviews\n"
        "/reviews – videos to review (coaches)\n"
        "/chats – messages\n"
        "/profile – profile and bookings\n"
        "/settings – notifications\n"
        "/thought – swing thought of the day\n"
        "/signout – sign out",
    )


@help_router.message(Command("thought"))
async def cmd_thought(msg: Message):
    await msg.answer(f"💭 <b>Today's swing thought</b>\n\n<i>{thought_for()}</i>")
