from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

log = logging.getLogger(__name__)


class LiveChangeListener:
    """Reloads the feed whenever the watched table changes.

    A burst of notifications collapses into one trailing reload `delay`
    seconds after the last one. Nothing is reloaded after stop().
    """

    def __init__(self, subscribe, reload: Callable[[], Awaitable[None]],
                 table: str = "posts", delay: float = 0.0):
        self._subscribe = subscribe
        self._reload = reload
        self.table = table
        self.delay = delay
        self._subscription = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def start(self) -> None:
        if self.active:
            return
        self._loop = asyncio.get_running_loop()
        self._subscription = self._subscribe(self.table, self._on_change)
        log.debug("Listening for %s changes", self.table)

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # called by the change hub, no payload diffing
    def _on_change(self, change) -> None:
        if not self.active or self._loop is None:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if not self.active:
            return
        task = self._loop.create_task(self._reload())
        self._tasks.add(task)
        task.add_done_callback(self._done)

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Live reload failed: %s", task.exception())
