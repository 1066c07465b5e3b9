# movieshelf/security_headers.py
from __future__ import annotations

"""
# MovieShelf · Security Headers & CORS

Security headers and CORS utilities for the API.

## What you get
- **Headers**: CSP, HSTS, CORP/COOP, Referrer-Policy, X-Content-Type-Options,
  X-Frame-Options.
- **CORS installer**: strict allow-list from settings (localhost defaults in dev).
- **Skip list**: path prefixes (docs/health) that don't get the CSP.
- **Cache helper**: `set_sensitive_cache()` for token-bearing responses.

## Env knobs
- ENABLE_HTTPS_REDIRECT (default: on in production only)
- SECURITY_SKIP_PATHS (CSV; default "/health,/docs,/openapi.json")
- HSTS_MAX_AGE (31536000)
- CSP_DEFAULT_SRC, CSP_IMG_SRC, CSP_FRAME_ANCESTORS
- REFERRER_POLICY (default "strict-origin-when-cross-origin")
"""

import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from fastapi import Response
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from movieshelf.core.config import settings


# ─────────────────────────────────────────────────────────────
# ⚙️ Configuration
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SecurityHeadersConfig:
    hsts_max_age: int = int(os.getenv("HSTS_MAX_AGE", "31536000"))
    csp_default_src: str = os.getenv("CSP_DEFAULT_SRC", "'self'")
    # Posters are rendered from presigned S3 URLs.
    csp_img_src: str = os.getenv("CSP_IMG_SRC", "'self' data: https:")
    csp_frame_ancestors: str = os.getenv("CSP_FRAME_ANCESTORS", "'none'")
    referrer_policy: str = os.getenv("REFERRER_POLICY", "strict-origin-when-cross-origin")
    coop: str = os.getenv("CROSS_ORIGIN_OPENER_POLICY", "same-origin")
    corp: str = os.getenv("CROSS_ORIGIN_RESOURCE_POLICY", "same-origin")
    skip_paths_csv: str = os.getenv("SECURITY_SKIP_PATHS", "/health,/docs,/openapi.json")


_CFG = SecurityHeadersConfig()


def _build_csp(cfg: SecurityHeadersConfig = _CFG) -> str:
    return "; ".join(
        [
            f"default-src {cfg.csp_default_src}",
            f"img-src {cfg.csp_img_src}",
            f"frame-ancestors {cfg.csp_frame_ancestors}",
        ]
    )


# ─────────────────────────────────────────────────────────────
# 🧩 Middleware
# ─────────────────────────────────────────────────────────────
class SecurityHeadersMiddleware:
    """ASGI middleware applying security headers idempotently on every response."""

    def __init__(self, app: ASGIApp, cfg: SecurityHeadersConfig = _CFG) -> None:
        self.app = app
        self.cfg = cfg
        self._skip_prefixes: Tuple[str, ...] = tuple(
            p.strip() for p in (cfg.skip_paths_csv or "").split(",") if p.strip()
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        is_skipped = any(scope.get("path", "").startswith(p) for p in self._skip_prefixes)

        async def send_wrapper(message):
            if message.get("type") == "http.response.start" and not is_skipped:
                raw_headers: List[Tuple[bytes, bytes]] = message.setdefault("headers", [])
                _apply_headers_to_raw(raw_headers, self.cfg)
            await send(message)

        await self.app(scope, receive, send_wrapper)


def _has_header(raw_headers: List[Tuple[bytes, bytes]], name: str) -> bool:
    lname = name.lower().encode("latin-1")
    return any(h[0].lower() == lname for h in raw_headers)


def _apply_headers_to_raw(raw_headers: List[Tuple[bytes, bytes]], cfg: SecurityHeadersConfig) -> None:
    wanted = {
        "Strict-Transport-Security": f"max-age={cfg.hsts_max_age}; includeSubDomains",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": cfg.referrer_policy,
        "Cross-Origin-Opener-Policy": cfg.coop,
        "Cross-Origin-Resource-Policy": cfg.corp,
        "Content-Security-Policy": _build_csp(cfg),
    }
    for name, value in wanted.items():
        if not _has_header(raw_headers, name):
            raw_headers.append((name.encode("latin-1"), value.encode("latin-1")))


# ─────────────────────────────────────────────────────────────
# 🔓 Public helpers
# ─────────────────────────────────────────────────────────────
def set_sensitive_cache(response: Response) -> None:
    """Mark a response as non-cacheable (tokens, per-user data)."""
    response.headers.setdefault("Cache-Control", "no-store")
    response.headers.setdefault("Pragma", "no-cache")
    response.headers.setdefault("Expires", "0")


# ─────────────────────────────────────────────────────────────
# 🌐 CORS installer (allow-list, not '*')
# ─────────────────────────────────────────────────────────────
def configure_cors(app, *, allow_methods: Optional[Iterable[str]] = None) -> None:
    """Install strict CORS based on settings."""
    origins = settings.frontend_origins_list
    origins_regex = (settings.ALLOW_ORIGINS_REGEX or "").strip() or None
    if not origins and not origins_regex:
        origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_origin_regex=origins_regex,
        allow_credentials=True,
        allow_methods=list(allow_methods or ["GET", "HEAD", "OPTIONS", "POST", "PATCH", "DELETE"]),
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "Idempotency-Key"],
        expose_headers=["Location", "Retry-After", "X-Request-ID"],
        max_age=3600,
    )


def install_security(app) -> None:
    """Add HTTPS redirect (optional) and the security headers middleware."""
    default_redirect = "true" if settings.is_production else "false"
    if os.getenv("ENABLE_HTTPS_REDIRECT", default_redirect).lower() == "true":
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, cfg=_CFG)


__all__ = [
    "SecurityHeadersConfig",
    "SecurityHeadersMiddleware",
    "install_security",
    "configure_cors",
    "set_sensitive_cache",
]
