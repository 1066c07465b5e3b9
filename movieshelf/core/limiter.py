from __future__ import annotations

"""
MovieShelf · HTTP Rate Limiting (SlowAPI)
=========================================

Highlights
----------
- **User/IP aware** keying: per-user when auth sets `request.state.user_id`,
  else per-client-IP (using XFF/X-Real-IP/client.host).
- **Exemptions**: health/docs paths.
- **Test/CI friendly**: `RATE_LIMIT_TEST_BYPASS` disables limits when truthy,
  `RATE_LIMIT_NAMESPACE` prefixes keys so parallel runs don't collide.
- **Backends**: Redis via `RATELIMIT_STORAGE_URI` or in-memory fallback.

Environment
-----------
RATE_LIMIT_ENABLED           default: "true"
DEFAULT_RATE_LIMIT           default: "100/minute"
RATELIMIT_STORAGE_URI        default: "" (falls back to "memory://")
RATE_LIMIT_SKIP_PATHS        default: "/health,/healthz,/readyz,/docs,/openapi.json"
RATE_LIMIT_NAMESPACE         default: ""
RATE_LIMIT_TEST_BYPASS       default: ""

Usage
-----
    @router.get("/movies")
    @rate_limit("60/minute")
    async def list_movies(request: Request, ...): ...
"""

import os
from typing import Callable, List, Optional

from dotenv import load_dotenv
from loguru import logger
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request

load_dotenv()

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
DEFAULT_LIMIT = os.getenv("DEFAULT_RATE_LIMIT", "100/minute").strip()
STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "").strip()
NAMESPACE = os.getenv("RATE_LIMIT_NAMESPACE", "").strip()

SKIP_PATHS: List[str] = [
    p.strip()
    for p in os.getenv("RATE_LIMIT_SKIP_PATHS", "/health,/healthz,/readyz,/docs,/openapi.json").split(",")
    if p.strip()
]


# ──────────────────────────────────────────────────────────────
# 🧠 Keying & exemptions
# ──────────────────────────────────────────────────────────────
def _client_ip(request: Request) -> str:
    """Best-effort client IP: X-Forwarded-For (first hop), X-Real-IP, then ASGI client."""
    xff = request.headers.get("x-forwarded-for")
    if xff and xff.split(",")[0].strip():
        return xff.split(",")[0].strip()
    xri = request.headers.get("x-real-ip")
    if xri:
        return xri.strip()
    return get_remote_address(request) or "unknown"


def _with_namespace(key: str) -> str:
    return f"{NAMESPACE}:{key}" if NAMESPACE else key


def get_user_rate_limit_key(request: Request) -> str:
    """`user:<id>` when auth already ran, else `ip:<addr>`."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return _with_namespace(f"user:{user_id}")
    return _with_namespace(f"ip:{_client_ip(request)}")


def should_exempt_request(request: Optional[Request]) -> bool:
    """
    Exempt a request when the global switch is off, the path is skipped, or
    the test bypass is on. Env flags are re-read per request so tests can
    toggle them with monkeypatch.
    """
    if os.getenv("RATE_LIMIT_ENABLED", "true").strip().lower() != "true":
        return True
    if os.getenv("RATE_LIMIT_TEST_BYPASS", "").strip().lower() in {"1", "true", "yes", "on"}:
        return True
    if request is None:
        return False
    path = request.url.path
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in SKIP_PATHS)


# ──────────────────────────────────────────────────────────────
# 🧰 Limiter instance (Redis / memory)
# ──────────────────────────────────────────────────────────────
def _build_default_limits() -> List[str]:
    return [chunk.strip() for chunk in DEFAULT_LIMIT.split(",") if chunk.strip()]


def _make_limiter() -> Optional[Limiter]:
    storage_uri = STORAGE_URI or "memory://"
    try:
        limiter = Limiter(
            key_func=get_user_rate_limit_key,
            default_limits=_build_default_limits(),
            headers_enabled=False,
            storage_uri=storage_uri,
        )
        logger.info("RateLimiter ready | default={} | storage={}", _build_default_limits(), storage_uri.split("@")[-1])
        return limiter
    except Exception as e:
        logger.error("Failed to init Limiter; limits disabled | err={}", e)
        return None


limiter: Optional[Limiter] = _make_limiter()


# ──────────────────────────────────────────────────────────────
# 🎛 Decorators
# ──────────────────────────────────────────────────────────────
def _exempt_when(request: Optional[Request] = None) -> bool:
    return should_exempt_request(request)


def rate_limit(*limits: str) -> Callable:
    """
    Apply per-route limits with MovieShelf exemptions.

    The decorated endpoint must accept a `request: Request` parameter.
    """
    if limiter is None:
        def _noop(fn: Callable) -> Callable:
            return fn
        return _noop

    selected = list(limits) if limits else _build_default_limits()

    def _apply(fn: Callable) -> Callable:
        for limit_value in reversed(selected):
            fn = limiter.limit(limit_value, exempt_when=_exempt_when)(fn)
        return fn

    return _apply


def rate_limit_exempt() -> Callable:
    """Explicitly exempt a route from limiting."""
    if limiter is None:
        def _noop(fn: Callable) -> Callable:
            return fn
        return _noop
    return limiter.exempt


# ──────────────────────────────────────────────────────────────
# 🔧 Installer
# ──────────────────────────────────────────────────────────────
def install_rate_limiter(app) -> None:
    """Attach SlowAPI middleware unless disabled by env."""
    if not limiter:
        logger.warning("RateLimiter not initialized; middleware not installed")
        return
    if not RATE_LIMIT_ENABLED:
        logger.info("RateLimiter disabled by env; middleware not installed")
        return

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
