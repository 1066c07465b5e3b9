# movieshelf/services/posters.py
from __future__ import annotations

"""
Poster reference resolution.

A movie's `poster` column holds either a bare storage key
(`posters/1700000000000-dune.jpg`) or a URL. URLs that point into our bucket,
virtual-hosted (`https://{bucket}.s3.{region}.amazonaws.com/{key}`) or
path-style (`https://s3.{region}.amazonaws.com/{bucket}/{key}`), are *owned*:
they can be signed for display and deleted when replaced. Anything else is
external and passed through untouched.

Signing and deletion never raise. Signing reports a `SignResult`, deletion
logs and returns False, so listing and mutation flows always complete.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlsplit

from fastapi import BackgroundTasks

from movieshelf.core.config import settings
from movieshelf.utils.aws import S3Client, S3StorageError

logger = logging.getLogger(__name__)


# ─── 🔎 Key extraction ──────────────────────────────────────
def extract_key(reference: Optional[str], bucket: Optional[str], region: Optional[str]) -> Optional[str]:
    """
    Return the bucket-relative key for `reference`, or None when it is not ours.

    - no http/https scheme: already a key, returned unchanged
    - `{bucket}.s3.*` host: key is the path without its leading '/'
    - `s3.amazonaws.com`, `s3.{region}.amazonaws.com` or any `s3.*` host whose
      first path segment is the bucket: key is the path after `/{bucket}/`
    - the path is percent-decoded exactly once
    """
    if not reference:
        return None
    ref = str(reference)
    if not ref.strip().lower().startswith(("http://", "https://")):
        return ref
    if not bucket:
        return None

    try:
        parts = urlsplit(ref.strip())
    except ValueError:
        logger.debug("Unparsable poster reference: %r", ref)
        return None

    host = (parts.hostname or "").lower()
    path = parts.path or ""
    bucket_l = bucket.lower()

    virtual_hosted = host.startswith(f"{bucket_l}.s3.")
    s3_host = (
        host == "s3.amazonaws.com"
        or (bool(region) and host == f"s3.{region.lower()}.amazonaws.com")
        or host.startswith("s3.")
    )
    path_style = s3_host and path.startswith(f"/{bucket}/")

    if not virtual_hosted and not path_style:
        return None

    raw = path[1:]
    if path_style and not virtual_hosted:
        raw = raw[len(bucket) + 1:]
    if not raw:
        return None
    return unquote(raw, errors="strict") if "%" in raw else raw


# ─── ✍️ Signing result ──────────────────────────────────────
class SignStatus(str, Enum):
    SIGNED = "signed"
    EXTERNAL = "external"
    FAILED = "failed"


@dataclass(frozen=True)
class SignResult:
    status: SignStatus
    url: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SignStatus.SIGNED


# ─── 🖼️ Resolver ────────────────────────────────────────────
class PosterResolver:
    """Signs owned poster references and cleans up replaced objects."""

    def __init__(
        self,
        storage: Optional[S3Client],
        *,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        sign_ttl_seconds: Optional[int] = None,
    ) -> None:
        self.storage = storage
        self.bucket = bucket or (storage.bucket if storage else settings.AWS_BUCKET_NAME)
        self.region = region or (storage.region if storage else settings.AWS_REGION)
        self.sign_ttl_seconds = int(sign_ttl_seconds or settings.POSTER_SIGN_TTL_SECONDS)

    def extract_key(self, reference: Optional[str]) -> Optional[str]:
        try:
            return extract_key(reference, self.bucket, self.region)
        except (ValueError, UnicodeDecodeError):
            logger.warning("Could not decode poster reference %r", reference)
            return None

    def sign(self, key: Optional[str], ttl_seconds: Optional[int] = None) -> SignResult:
        if not key:
            return SignResult(SignStatus.EXTERNAL, reason="not a bucket object")
        if self.storage is None:
            return SignResult(SignStatus.FAILED, reason="storage not configured")
        try:
            url = self.storage.presigned_get(key, expires_in=ttl_seconds or self.sign_ttl_seconds)
        except S3StorageError as e:
            logger.warning("Poster signing failed for %s: %s", key, e)
            return SignResult(SignStatus.FAILED, reason=str(e))
        return SignResult(SignStatus.SIGNED, url=url)

    def present(self, reference: Optional[str]) -> Optional[str]:
        """External form of a stored reference: signed URL when possible, else as stored."""
        result = self.sign(self.extract_key(reference))
        return result.url if result.ok else reference

    def present_many(self, references: Iterable[Optional[str]]) -> List[Optional[str]]:
        return [self.present(ref) for ref in references]

    # ── cleanup ─────────────────────────────────────────────
    def delete_key(self, key: str) -> bool:
        if self.storage is None:
            logger.warning("Skipping poster deletion for %s: storage not configured", key)
            return False
        try:
            deleted = self.storage.delete(key)
        except S3StorageError as e:
            logger.warning("Poster deletion failed for %s: %s", key, e)
            return False
        if deleted:
            logger.info("Deleted poster object %s", key)
        return deleted

    def _dispatch(self, key: str, background_tasks: Optional[BackgroundTasks]) -> None:
        if background_tasks is not None:
            background_tasks.add_task(self.delete_key, key)
        else:
            self.delete_key(key)

    def schedule_deletion(self, reference: Optional[str], background_tasks: Optional[BackgroundTasks] = None) -> Optional[str]:
        """Delete the object behind `reference` if it is ours. Returns the key queued."""
        key = self.extract_key(reference)
        if key is None:
            return None
        self._dispatch(key, background_tasks)
        return key

    def schedule_deletion_if_replaced(
        self,
        old_reference: Optional[str],
        new_reference: Optional[str],
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Optional[str]:
        """Queue deletion of the old object when both keys resolve and differ."""
        old_key = self.extract_key(old_reference)
        new_key = self.extract_key(new_reference)
        if old_key is None or new_key is None or old_key == new_key:
            return None
        self._dispatch(old_key, background_tasks)
        return old_key


@lru_cache(maxsize=1)
def _default_resolver() -> PosterResolver:
    try:
        storage: Optional[S3Client] = S3Client()
    except S3StorageError as e:
        logger.warning("Poster storage unavailable: %s", e)
        storage = None
    return PosterResolver(storage)


def get_poster_resolver() -> PosterResolver:
    """FastAPI dependency; overridden in tests."""
    return _default_resolver()


__all__ = [
    "extract_key",
    "SignStatus",
    "SignResult",
    "PosterResolver",
    "get_poster_resolver",
]
