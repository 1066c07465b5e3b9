# movieshelf/main.py
from __future__ import annotations

"""
# MovieShelf API · Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the MovieShelf catalog backend.

## Design Goals
- Deterministic, testable **app factory** (`create_app`) with explicit lifespan.
- Explicit **middleware order**:
  1) request id → 2) security headers/HTTPS → 3) CORS → 4) gzip →
  5) rate limits → 6) strip `Server` header.
- Centralized problem+json exception handling.

## Probes
- `/health`, `/healthz`, `/readyz` (see `movieshelf.api.meta`).
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware
from starlette.responses import JSONResponse, Response

# Importing sets up loguru sinks + stdlib intercept.
from movieshelf.core import logger as _logsetup  # noqa: F401
from movieshelf.api.meta import router as meta_router
from movieshelf.api.v1.routers import router as api_v1_router
from movieshelf.core.config import settings
from movieshelf.core.exception_handlers import (
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from movieshelf.core.limiter import install_rate_limiter
from movieshelf.core.redis_client import redis_wrapper
from movieshelf.db.session import async_engine
from movieshelf.middleware.request_id import RequestIDMiddleware
from movieshelf.security_headers import configure_cors, install_security

logger = logging.getLogger("movieshelf")


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup: best-effort Redis connect (degraded mode on failure).
    Shutdown: dispose the DB engine and close Redis.
    """
    logger.info("MovieShelf API starting up")
    try:
        await redis_wrapper.connect()
    except Exception:
        logger.exception("Redis connect failed (continuing in degraded mode)")

    try:
        yield
    finally:
        try:
            await async_engine.dispose()
            logger.info("Database engine disposed")
        except Exception:
            logger.exception("Error disposing DB engine")
        try:
            await redis_wrapper.close()
        except Exception:
            logger.exception("Error closing Redis client")
        logger.info("MovieShelf API shutting down")


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> FastAPI:
    """Build the FastAPI app with middleware, exception handlers and routers."""
    enable_docs = settings.ENABLE_DOCS
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs" if enable_docs else None,
        redoc_url="/redoc" if enable_docs else None,
        openapi_url="/openapi.json" if enable_docs else None,
        lifespan=lifespan,
    )

    # ── Middlewares (order matters) ─────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    install_security(app)
    configure_cors(app)
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    install_rate_limiter(app)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.middleware("http")
    async def _strip_server_header(request: Request, call_next: Callable) -> Response:
        """Remove the `Server` header to avoid leaking implementation details."""
        response: Response = await call_next(request)
        if "server" in response.headers:
            del response.headers["server"]
        return response

    # ── Exception handlers (problem+json) ───────────────────────────────────
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)  # type: ignore[arg-type]

    # ── Routers ─────────────────────────────────────────────────────────────
    app.include_router(api_v1_router, prefix=settings.API_V1_STR)
    app.include_router(meta_router)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse({"name": settings.PROJECT_NAME, "docs": app.docs_url or "", "version": settings.VERSION})

    return app


app = create_app()
__all__ = ["create_app", "app"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "movieshelf.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
