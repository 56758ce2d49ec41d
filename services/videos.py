"""Swing video checks and the simulated upload."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from config import VIDEO_MAX_SIZE, VIDEO_MAX_DURATION, UPLOAD_PROGRESS_STEP, UPLOAD_PROGRESS_DELAY
from feed.errors import VideoTooLarge, VideoTooLong


def check_video(duration: int | None, size: int | None) -> None:
    if duration is not None and duration > VIDEO_MAX_DURATION:
        raise VideoTooLong(f"Please select a video shorter than {VIDEO_MAX_DURATION} seconds")
    if size is not None and size > VIDEO_MAX_SIZE:
        raise VideoTooLarge()


class UploadProgress:
    """Percentage of one upload. Starts at 0 for every upload and only grows."""

    def __init__(self, step: int = UPLOAD_PROGRESS_STEP, delay: float = UPLOAD_PROGRESS_DELAY):
        self.step = step
        self.delay = delay
        self.percent = 0
        self.running = False

    async def run(self, on_progress: Callable[[int], Awaitable[None]] | None = None) -> int:
        # No processing pipeline behind it: a timed loop from 0 to 100.
        self.percent = 0
        self.running = True
        try:
            for value in range(0, 101, self.step):
                self.percent = value
                if on_progress is not None:
                    await on_progress(value)
                await asyncio.sleep(self.delay)
            if self.percent != 100:
                self.percent = 100
                if on_progress is not None:
                    await on_progress(100)
        finally:
            self.running = False
        return self.percent
