# services/session.py
"""Who is signed in, per Telegram account.

The SessionRegistry is created once by the bot and handed to handlers; it
owns every SessionContext and keeps them in step with auth events.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from feed.errors import SessionUnresolved

log = logging.getLogger(__name__)

SIGNED_IN, SIGNED_OUT = "SIGNED_IN", "SIGNED_OUT"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    full_name: str
    role: str
    avatar_url: Optional[str] = None

    @property
    def is_coach(self) -> bool:
        return self.role == "coach"


Listener = Callable[[Optional[Identity]], None]


class SessionContext:
    def __init__(self, telegram_id: int,
                 restore: Callable[[int], Awaitable[Optional[Identity]]]):
        self.telegram_id = telegram_id
        self._restore = restore
        self._identity: Optional[Identity] = None
        self._resolved = False
        self._resolving: asyncio.Lock = asyncio.Lock()
        self._listeners: list[Listener] = []

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    def require_resolved(self) -> None:
        if not self._resolved:
            raise SessionUnresolved()

    async def resolve(self) -> Optional[Identity]:
        """Restore the persisted session. Runs once; later calls return the held identity."""
        async with self._resolving:
            if not self._resolved:
                self._identity = await self._restore(self.telegram_id)
                self._resolved = True
        return self._identity

    def replace(self, identity: Optional[Identity]) -> None:
        self._resolved = True
        if identity == self._identity:
            return
        self._identity = identity
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception:
                log.exception("Session listener failed for %s", self.telegram_id)

    def on_change(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe


class SessionRegistry:
    def __init__(self, auth):
        self.auth = auth
        self._contexts: dict[int, SessionContext] = {}
        self._unsubscribe = auth.on_session_change(self._on_auth_event)

    async def get(self, telegram_id: int) -> SessionContext:
        ctx = self._contexts.get(telegram_id)
        if ctx is None:
            ctx = self._contexts[telegram_id] = SessionContext(telegram_id, self.auth.restore)
        await ctx.resolve()
        return ctx

    def _on_auth_event(self, event: str, telegram_id: int | None,
                       identity: Optional[Identity]) -> None:
        if telegram_id is None:
            return
        ctx = self._contexts.get(telegram_id)
        if ctx is None:
            ctx = self._contexts[telegram_id] = SessionContext(telegram_id, self.auth.restore)
        log.info("Session %s for telegram user %s", event, telegram_id)
        ctx.replace(identity if event == SIGNED_IN else None)

    def close(self) -> None:
        self._unsubscribe()
        self._contexts.clear()
