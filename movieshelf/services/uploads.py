# movieshelf/services/uploads.py
from __future__ import annotations

"""
Poster uploads.

Multipart poster files are validated (image content type, size cap) and
stored under `posters/{epoch_millis}-{filename}`. The persisted reference is
the object's virtual-hosted URL, which the poster resolver recognises as
owned on later reads and updates.
"""

import logging
import os
import re
import time
from typing import Optional

from fastapi import UploadFile, status
from starlette.concurrency import run_in_threadpool

from movieshelf.core.config import settings
from movieshelf.core.exceptions import AppException, PosterRejectedException, PosterUploadFailedException
from movieshelf.services.posters import PosterResolver
from movieshelf.utils.aws import S3StorageError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._\-+=@() ]")
_READ_CHUNK = 64 * 1024


def build_poster_key(filename: Optional[str], now_ms: Optional[int] = None, *, prefix: Optional[str] = None) -> str:
    """`{prefix}{epoch_millis}-{basename}` with the basename reduced to safe characters."""
    base = os.path.basename((filename or "").replace("\\", "/")).strip()
    base = _UNSAFE_FILENAME_RE.sub("_", base).replace("..", "_").strip(" ") or "poster"
    stamp = int(now_ms if now_ms is not None else time.time() * 1000)
    return f"{settings.POSTER_KEY_PREFIX if prefix is None else prefix}{stamp}-{base}"


async def _read_capped(upload: UploadFile, max_bytes: int) -> bytes:
    buf = bytearray()
    while True:
        chunk = await upload.read(_READ_CHUNK)
        if not chunk:
            return bytes(buf)
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise PosterRejectedException(
                f"Poster exceeds the {max_bytes // (1024 * 1024)} MB limit",
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            )


async def upload_poster(upload: UploadFile, resolver: PosterResolver) -> str:
    """
    Store an uploaded poster and return its reference.

    Steps
    -----
    - **[Step 1]** Reject non-image content types (400).
    - **[Step 2]** Read with a size cap (413).
    - **[Step 3]** `put_object` in a worker thread; failure → 502.
    """
    # ── [Step 1] Content type ───────────────────────────────
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if not content_type.startswith("image/"):
        raise PosterRejectedException("Only image files are allowed!")

    # ── [Step 2] Size cap ───────────────────────────────────
    data = await _read_capped(upload, settings.POSTER_MAX_BYTES)
    if not data:
        raise PosterRejectedException("Poster file is empty")

    if resolver.storage is None:
        raise AppException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, message="Poster storage is not configured")

    # ── [Step 3] Upload ─────────────────────────────────────
    key = build_poster_key(upload.filename)
    try:
        await run_in_threadpool(resolver.storage.put_bytes, key, data, content_type=content_type)
    except S3StorageError as e:
        logger.error("Poster upload failed for %s: %s", key, e)
        raise PosterUploadFailedException()

    logger.info("Uploaded poster %s (%d bytes)", key, len(data))
    return resolver.storage.object_url(key)


__all__ = ["build_poster_key", "upload_poster"]
