# services/storage.py
"""Object storage buckets on the local disk, published by the bot's web app
under /storage/<bucket>/<path>."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable

from config import STORAGE_ROOT, PUBLIC_URL
from feed.errors import StorageError

log = logging.getLogger(__name__)

META_SUFFIX = ".meta.json"


class Bucket:
    def __init__(self, name: str, root: str | Path = STORAGE_ROOT, public_url: str = PUBLIC_URL):
        self.name = name
        self.root = Path(root) / name
        self.public_url = public_url.rstrip("/")

    def resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or not rel.parts or ".." in rel.parts or path.endswith(META_SUFFIX):
            raise StorageError(f"Invalid object path: {path!r}")
        return self.root.joinpath(*rel.parts)

    async def upload(self, path: str, data: bytes, *, content_type: str = "application/octet-stream",
                     cache_control: str = "3600", upsert: bool = False) -> str:
        target = self.resolve(path)
        if target.exists() and not upsert:
            raise StorageError("The resource already exists")
        meta = {"content_type": content_type, "cache_control": cache_control, "size": len(data)}
        try:
            await asyncio.to_thread(_write, target, data, meta)
        except OSError as e:
            raise StorageError(f"Upload of {path} failed") from e
        log.debug("Stored %s/%s (%d bytes)", self.name, path, len(data))
        return path

    def get_public_url(self, path: str) -> str:
        self.resolve(path)
        return f"{self.public_url}/storage/{self.name}/{path}"

    async def download(self, path: str) -> bytes:
        target = self.resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as e:
            raise StorageError("Object not found") from e
        except OSError as e:
            raise StorageError(f"Download of {path} failed") from e

    def metadata(self, path: str) -> dict:
        meta = _meta_path(self.resolve(path))
        if not meta.exists():
            return {}
        return json.loads(meta.read_text(encoding="utf-8"))

    async def remove(self, paths: Iterable[str]) -> list[str]:
        removed = []
        for path in paths:
            target = self.resolve(path)
            try:
                await asyncio.to_thread(_unlink, target)
            except OSError as e:
                raise StorageError(f"Removal of {path} failed") from e
            removed.append(path)
        return removed


def _meta_path(target: Path) -> Path:
    return target.with_name(target.name + META_SUFFIX)


def _write(target: Path, data: bytes, meta: dict) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    _meta_path(target).write_text(json.dumps(meta), encoding="utf-8")


def _unlink(target: Path) -> None:
    target.unlink(missing_ok=True)
    _meta_path(target).unlink(missing_ok=True)
