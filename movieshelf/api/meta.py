# movieshelf/api/meta.py
from __future__ import annotations

"""
Meta endpoints (not versioned, not rate limited).

- `/health`  : status, process uptime and current UTC timestamp.
- `/healthz` : liveness (process up, no external checks).
- `/readyz`  : readiness (quick DB + Redis checks).
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter

from movieshelf.core.limiter import rate_limit_exempt
from movieshelf.core.redis_client import redis_wrapper
from movieshelf.db.session import db_healthcheck
from movieshelf.schemas.health import HealthOut

router = APIRouter(tags=["meta"])

_STARTED_AT = time.monotonic()


def uptime_seconds() -> float:
    return round(time.monotonic() - _STARTED_AT, 3)


@router.get("/health", response_model=HealthOut)
@rate_limit_exempt()
async def health() -> HealthOut:
    return HealthOut(
        status="ok",
        uptimeSeconds=uptime_seconds(),
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


@router.get("/healthz")
@rate_limit_exempt()
async def healthz() -> dict[str, bool]:
    """Liveness probe."""
    return {"ok": True}


@router.get("/readyz")
@rate_limit_exempt()
async def readyz() -> dict[str, object]:
    """
    Readiness probe (best-effort).

    Returns per-dependency booleans and an aggregated `ready` flag.
    """
    redis_ok = await redis_wrapper.is_connected()
    if not redis_ok:
        try:
            await redis_wrapper.connect()
            redis_ok = await redis_wrapper.is_connected()
        except Exception:
            redis_ok = False

    db_ok = await db_healthcheck()

    return {"ready": bool(db_ok and redis_ok), "checks": {"db": db_ok, "redis": redis_ok}}
