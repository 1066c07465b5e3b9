# movieshelf/core/exceptions.py
from __future__ import annotations

"""
MovieShelf · Application Exceptions
===================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` that
lets us attach structured metadata and integrate cleanly with the
problem+JSON shape rendered by `movieshelf.core.exception_handlers`.

Key ideas
---------
- One base `AppException` that carries `code`, `details`, `extra`.
- Domain exceptions inherit from it and set sane defaults.
- Zero breaking changes for callers already catching `HTTPException`.

Usage
-----
    raise MovieNotFoundException()
    raise AppException(status_code=409, message="Email already registered", details={"field": "email"})
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "InvalidTokenException",
    "InvalidCredentialsException",
    "EmailAlreadyRegisteredException",
    "MovieNotFoundException",
    "DuplicateMovieTitleException",
    "PosterRejectedException",
    "PosterUploadFailedException",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code (e.g., 400/401/403/404/409/422/500).
    message : str
        Human-readable error message (serialized as `detail` as well).
    code : int
        Optional internal/typed error code. Defaults to `status_code`.
    details : dict | list | str | None
        Machine-readable details (e.g., constraints, ids).
    extra : dict | None
        Additional non-sensitive metadata to surface to clients.
    headers : dict | None
        Optional headers (e.g., `{"WWW-Authenticate": "Bearer"}`).
    """

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: Optional[int] = None,
        details: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: int = int(code or status_code)
        self.message: str = message
        self.details: Optional[Any] = details
        self.extra: Dict[str, Any] = extra or {}

    def to_problem(self, *, request_id: Optional[str] = None) -> Dict[str, Any]:
        """Return the extension members merged into the problem body."""
        body: Dict[str, Any] = {"code": self.code, "request_id": request_id or "N/A"}
        if self.details is not None:
            body["details"] = self.details
        extra_sanitized = dict(self.extra) if self.extra else {}
        for k in ("token", "authorization", "password", "secret"):
            extra_sanitized.pop(k, None)
        body.update(extra_sanitized)
        return body


# ──────────────────────────────────────────────────────────────
# 🔑 Auth/Token exceptions
# ──────────────────────────────────────────────────────────────
class InvalidTokenException(AppException):
    """Raised for invalid or expired tokens (401 by default)."""

    def __init__(
        self,
        *,
        detail: str = "Invalid or expired token",
        status_code: int = status.HTTP_401_UNAUTHORIZED,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(
            status_code=status_code,
            message=detail,
            headers=headers or {"WWW-Authenticate": "Bearer"},
        )


class InvalidCredentialsException(AppException):
    """Neutral login failure; never reveals whether the email exists."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            message="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


class EmailAlreadyRegisteredException(AppException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            message="User with this email already exists",
            details={"field": "email"},
        )


# ──────────────────────────────────────────────────────────────
# 🎬 Movie catalog exceptions
# ──────────────────────────────────────────────────────────────
class MovieNotFoundException(AppException):
    def __init__(self, movie_id: Optional[Any] = None) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            message="Movie not found",
            details={"id": str(movie_id)} if movie_id is not None else None,
        )


class DuplicateMovieTitleException(AppException):
    def __init__(self, title: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            message="Movie with this title already exists",
            details={"field": "title", "value": title},
        )


class PosterRejectedException(AppException):
    """Poster upload refused before touching storage (type/size)."""

    def __init__(self, message: str, *, status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(status_code=status_code, message=message, details={"field": "poster"})


class PosterUploadFailedException(AppException):
    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, message="Poster upload failed")
