# feed/composer.py
"""Pending post: text plus up to MAX_IMAGES staged images.

submit() validates locally, uploads every image, then creates the post. If
one image read or upload fails, the images already uploaded for this submit
are removed and no post is created.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Awaitable, Callable

from config import MAX_IMAGES, IMAGE_SIZE_LIMIT
from feed.errors import (
    BackendError, EmptyPost, ImageTooLarge, LimitExceeded,
    MutationFailed, ProfileRequired, SubmitInProgress, UploadFailed,
)
from feed.models import StagedImage

log = logging.getLogger(__name__)


def image_name() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.jpg"


class Composer:
    def __init__(
        self,
        store,
        bucket,
        session,
        read_image: Callable[[str], Awaitable[bytes]],
        on_posted: Callable[[], Awaitable[None]] | None = None,
        max_images: int = MAX_IMAGES,
        size_limit: int = IMAGE_SIZE_LIMIT,
    ):
        self.store = store
        self.bucket = bucket
        self.session = session
        self.read_image = read_image
        self.on_posted = on_posted
        self.max_images = max_images
        self.size_limit = size_limit

        self.text = ""
        self.images: list[StagedImage] = []
        self._submitting = False

    @property
    def submitting(self) -> bool:
        return self._submitting

    @property
    def can_submit(self) -> bool:
        return not self._submitting and bool(self.text.strip() or self.images)

    def add_image(self, ref: str, size: int | None = None,
                  content_type: str = "image/jpeg") -> StagedImage:
        if self._submitting:
            raise SubmitInProgress()
        if len(self.images) >= self.max_images:
            raise LimitExceeded(f"You can only select up to {self.max_images} images")
        if size is not None and size > self.size_limit:
            raise ImageTooLarge()
        image = StagedImage(ref=ref, size=size, content_type=content_type)
        self.images.append(image)
        return image

    def remove_image(self, index: int) -> bool:
        if self._submitting:
            raise SubmitInProgress()
        if not 0 <= index < len(self.images):
            return False
        del self.images[index]
        return True

    def clear(self) -> None:
        self.text = ""
        self.images = []

    async def submit(self) -> str:
        """Publish the pending post and return its id."""
        if self._submitting:
            raise SubmitInProgress()
        content = self.text.strip()
        if not content and not self.images:
            raise EmptyPost()

        self._submitting = True
        try:
            identity = self.session.identity
            if identity is None or not await self.store.profile_exists(identity.id):
                raise ProfileRequired()

            urls = await self._upload_all(list(self.images))
            try:
                post_id = await self.store.insert_post(identity.id, content, urls)
            except BackendError as e:
                log.warning("Post creation failed for %s: %s", identity.id, e)
                raise MutationFailed("Failed to create post") from e

            log.info("Post %s created by %s with %d image(s)", post_id, identity.id, len(urls))
            self.clear()
        finally:
            self._submitting = False

        if self.on_posted is not None:
            await self.on_posted()
        return post_id

    async def _upload_all(self, images: list[StagedImage]) -> list[str]:
        uploaded: list[str] = []
        try:
            for image in images:
                data = await self.read_image(image.ref)
                name = image_name()
                await self.bucket.upload(name, data, content_type=image.content_type,
                                         cache_control="3600")
                uploaded.append(name)
        except Exception as e:
            # read_image raises whatever Telegram's download raises
            log.warning("Image upload failed after %d of %d: %s",
                        len(uploaded), len(images), e)
            await self._discard(uploaded)
            raise UploadFailed() from e
        return [self.bucket.get_public_url(name) for name in uploaded]

    async def _discard(self, names: list[str]) -> None:
        if not names:
            return
        try:
            await self.bucket.remove(names)
        except BackendError as e:
            log.warning("Could not remove orphaned uploads %s: %s", names, e)
