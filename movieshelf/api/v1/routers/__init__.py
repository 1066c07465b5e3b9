"""
🧭 MovieShelf • API v1 Router Aggregator
=======================================

    from movieshelf.api.v1.routers import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")

Auth & rate limits live in the child routers.
"""

from fastapi import APIRouter

from .auth import router as auth_router
from .movies import router as movies_router


def build_v1_router() -> APIRouter:
    """Compose the v1 surface: `/auth/*` and `/movies/*`."""
    v1 = APIRouter()
    v1.include_router(auth_router)
    v1.include_router(movies_router)
    return v1


router = build_v1_router()

__all__ = ["router", "build_v1_router", "auth_router", "movies_router"]
