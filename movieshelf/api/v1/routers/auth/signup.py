"""
Register API
============

POST /auth/register
-------------------
Creates a new account and immediately issues an access token.

Security & Hardening
--------------------
- **No-store** cache headers on token-bearing responses.
- **Per-route rate limit** to reduce abuse.
- **Idempotency** via `Idempotency-Key` (best-effort, Redis) so repeats with
  the same key return the first response. The cache key is bound to the
  normalised email, so a reused key never replays another account.
"""

import hashlib

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from movieshelf.core.limiter import rate_limit
from movieshelf.core.redis_client import redis_wrapper
from movieshelf.db.session import get_async_db
from movieshelf.schemas.auth import AuthResponse, RegisterRequest
from movieshelf.security_headers import set_sensitive_cache
from movieshelf.services.auth.signup_service import register_user

router = APIRouter(tags=["Authentication"])


def _idempotency_key(header: str, email: str) -> str:
    """Scope a client Idempotency-Key to the account being registered."""
    digest = hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()[:32]
    return f"idemp:auth:register:{digest}:{header}"


# ──────────────────────────────────────────────────────
# 👤 Register Endpoint
# ──────────────────────────────────────────────────────
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new account and issue an access token",
)
@rate_limit("10/minute")
async def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Steps
    -----
    1) **Harden response** with no-store cache headers.
    2) **Replay** an idempotent snapshot when `Idempotency-Key` matches.
    3) **Delegate** to the signup service.
    4) **Store** the idempotent snapshot (best-effort, 10 minutes).
    """
    # 1) Never cache token responses
    set_sensitive_cache(response)

    # 2) Idempotency replay
    idem_hdr = request.headers.get("Idempotency-Key")
    cache_key = _idempotency_key(idem_hdr, payload.email) if idem_hdr else None
    if cache_key:
        try:
            snap = await redis_wrapper.idempotency_get(cache_key)
        except Exception:
            snap = None
        if snap:
            return JSONResponse(snap, status_code=status.HTTP_201_CREATED, headers={"Cache-Control": "no-store"})

    # 3) Delegate
    result = await register_user(payload, db)

    # 4) Snapshot
    if cache_key:
        try:
            await redis_wrapper.idempotency_set(cache_key, result.model_dump(mode="json", by_alias=True), ttl_seconds=600)
        except Exception:
            pass

    return result


__all__ = ["router", "register"]
