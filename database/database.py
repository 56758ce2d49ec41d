# database/database.py
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from config import DB_PATH

log = logging.getLogger(__name__)

# 1. Base first
Base = declarative_base()

# 2. Engine + session factory
engine = create_async_engine(DB_PATH, echo=False)
async_session = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

if engine.dialect.name == "sqlite":
    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_foreign_keys(dbapi_connection, connection_record):
        # likes/comments must point at real posts and profiles
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# 3. Models AFTER Base exists; changes hooks onto the session events
from database import profile, post, post_like, comment, booking, video, chat, changes   # noqa: E402,F401


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))
