# movieshelf/utils/aws.py
from __future__ import annotations

"""
🧊 MovieShelf • S3 Utilities
============================

Thin boto3 wrapper used by the poster pipeline:
- Server-side upload of poster bytes
- Short-lived signed GET for private poster objects
- Idempotent delete of replaced/removed posters
- Virtual-hosted object URL building

🔗 Contract
-----------
- Class: `S3Client`, `S3StorageError`
- Methods: `presigned_get`, `put_bytes`, `delete`, `object_url`

Validation focuses on the inputs we control (keys); S3-specific failures
surface as `S3StorageError`.
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from movieshelf.core.config import settings

logger = logging.getLogger(__name__)


class S3StorageError(RuntimeError):
    """Raised when a storage operation fails (network, auth, policy, etc.)."""


# ─────────────────────────────────────────────────────────────────────────────
# 🧰 Key validation
# ─────────────────────────────────────────────────────────────────────────────
_KEY_ALLOWED_RE = re.compile(r"[A-Za-z0-9._\-/+=@() ]+")


def _normalize_key(key: str) -> str:
    """
    Validate S3 object keys without rewriting them.

    A key that would need rewriting to become valid is rejected, so the key
    used against the bucket is always exactly the one the caller stored.

    Rejects
    -------
    - empty keys and keys with surrounding whitespace
    - a leading '/' or any empty path segment ('//')
    - path traversal ('..') and disallowed characters
    """
    k = "" if key is None else str(key)
    if not k.strip():
        raise S3StorageError("Invalid storage key: empty")
    if k != k.strip():
        raise S3StorageError("Invalid storage key: surrounding whitespace")
    if k.startswith("/") or "//" in k:
        raise S3StorageError("Invalid storage key: empty path segment")
    if ".." in k:
        raise S3StorageError("Invalid storage key: path traversal detected")
    if not _KEY_ALLOWED_RE.fullmatch(k):
        raise S3StorageError("Invalid storage key: contains forbidden characters")
    return k


def _secret_value(v: Any) -> Optional[str]:
    if v is None:
        return None
    return v.get_secret_value() if hasattr(v, "get_secret_value") else str(v)


# ─────────────────────────────────────────────────────────────────────────────
# 📦 S3 Client
# ─────────────────────────────────────────────────────────────────────────────
class S3Client:
    """
    High-level S3 wrapper with safe defaults.

    Parameters
    ----------
    bucket : str | None
        Destination bucket. Defaults to `settings.AWS_BUCKET_NAME`.
    region_name : str | None
        Defaults to `settings.AWS_REGION`.
    endpoint_url : str | None
        Custom S3-compatible endpoint (LocalStack/MinIO). Defaults to
        `settings.AWS_S3_ENDPOINT_URL`.
    client : Any
        Pre-built boto3-compatible client (tests inject a stub here).

    Credentials come from settings when both key id and secret are set,
    otherwise from the standard AWS credential chain.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket or settings.AWS_BUCKET_NAME
        if not self.bucket:
            raise S3StorageError("AWS_BUCKET_NAME not configured")
        self.region = region_name or settings.AWS_REGION or "us-east-1"
        self.endpoint_url = endpoint_url or settings.AWS_S3_ENDPOINT_URL

        if client is not None:
            self.client = client
            return

        cfg = BotoConfig(
            signature_version="s3v4",
            retries={"max_attempts": 5, "mode": "standard"},
            connect_timeout=3,
            read_timeout=10,
            s3={"addressing_style": "virtual"},
        )
        client_kwargs: Dict[str, Any] = {"config": cfg, "region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url

        ak = settings.AWS_ACCESS_KEY_ID
        sk = _secret_value(settings.AWS_SECRET_ACCESS_KEY)
        st = _secret_value(settings.AWS_SESSION_TOKEN)
        if ak and sk:
            client_kwargs["aws_access_key_id"] = ak
            client_kwargs["aws_secret_access_key"] = sk
            if st:
                client_kwargs["aws_session_token"] = st

        try:
            self.client = boto3.client("s3", **client_kwargs)
        except (BotoCoreError, ValueError) as e:  # pragma: no cover
            raise S3StorageError(f"Failed to create S3 client: {e}") from e

    # ────────────────────────────────────────────────────────────────────────
    # 🔐 Signed URL
    # ────────────────────────────────────────────────────────────────────────
    def presigned_get(self, key: str, *, expires_in: int = 3600) -> str:
        """Generate a presigned GET URL for `key` valid for `expires_in` seconds."""
        k = _normalize_key(key)
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": k},
                ExpiresIn=int(expires_in),
            )
        except Exception as e:
            raise S3StorageError(f"Failed to create presigned GET: {e}") from e

    # ────────────────────────────────────────────────────────────────────────
    # 🚀 Server-side ops
    # ────────────────────────────────────────────────────────────────────────
    def put_bytes(self, key: str, data: bytes, *, content_type: str, cache_control: Optional[str] = None) -> None:
        """Upload a small payload from the server."""
        k = _normalize_key(key)
        args: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": k,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            args["CacheControl"] = cache_control
        try:
            self.client.put_object(**args)
        except Exception as e:
            raise S3StorageError(f"Failed to upload object: {e}") from e

    def delete(self, key: str) -> bool:
        """
        Best-effort delete.

        - True on success and for "NoSuchKey" (idempotent delete).
        - False on other errors (logged at WARNING).
        """
        k = _normalize_key(key)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=k)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in {"NoSuchKey", "404", "NotFound"}:
                return True
            logger.warning("delete_object failed (non-fatal): %s", e)
            return False
        except Exception as e:
            logger.warning("delete_object failed (non-fatal): %s", e)
            return False

    # ────────────────────────────────────────────────────────────────────────
    # 🌐 Public URL
    # ────────────────────────────────────────────────────────────────────────
    def object_url(self, key: str) -> str:
        """
        Build the virtual-hosted HTTPS URL (non-signed) with the key
        percent-encoded once; '/' separators are kept.
        """
        k = quote(_normalize_key(key), safe="/")
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{k}"

    def __repr__(self) -> str:  # pragma: no cover
        return f"S3Client(bucket={self.bucket}, region={self.region}, endpoint={'yes' if self.endpoint_url else 'no'})"


__all__ = ["S3Client", "S3StorageError"]
