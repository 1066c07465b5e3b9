"""
MovieShelf · Movies
===================

Endpoints (bearer auth)
-----------------------
- GET    /movies              : Paginated list, newest first (page, limit, pageSize)
- POST   /movies              : Create (multipart poster upload or poster reference; Idempotency-Key)
- GET    /movies/{movie_id}   : Fetch single movie
- PATCH  /movies/{movie_id}   : Partial update; replaced poster objects are cleaned up
- DELETE /movies/{movie_id}   : Delete movie and its poster object

Bodies
------
Create and update accept either `multipart/form-data` (with `poster` as a
file or a string) or JSON (`poster` as a string reference). Field names are
camelCase on the wire (`publishingYear`); snake_case is accepted too.

Security & Ops Practices
------------------------
- SlowAPI per-route rate limits
- Redis idempotency snapshots for creates (Idempotency-Key)
- Redis distributed locks + DB row-level `FOR UPDATE` for mutations
- Poster cleanup runs after the response (BackgroundTasks) and never fails
  the request; uploads orphaned by a failed write are removed inline
"""

from __future__ import annotations

# ── [Imports] ─────────────────────────────────────────────────────────────────────────────
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from movieshelf.core.exceptions import (
    AppException,
    DuplicateMovieTitleException,
    MovieNotFoundException,
    PosterRejectedException,
)
from movieshelf.core.limiter import rate_limit
from movieshelf.core.redis_client import redis_wrapper
from movieshelf.core.security import get_current_user
from movieshelf.db.models.movie import Movie
from movieshelf.db.models.user import User
from movieshelf.db.session import get_async_db
from movieshelf.schemas.movies import (
    MessageOut,
    MovieCreateIn,
    MovieOut,
    MoviePatchIn,
    PaginatedMoviesOut,
    PaginationOut,
)
from movieshelf.security_headers import set_sensitive_cache
from movieshelf.services import movies_service
from movieshelf.services.pagination import resolve
from movieshelf.services.posters import PosterResolver, get_poster_resolver
from movieshelf.services.uploads import upload_poster

router = APIRouter(prefix="/movies", tags=["Movies"])


# ─────────────────────────────────────────────────────────────────────────────
# 🧩 Helpers
# ─────────────────────────────────────────────────────────────────────────────
_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_movie_body(request: Request) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    """
    Split a create/update body into plain fields and an optional poster file.

    Multipart `poster` may be a file (uploaded) or a string (stored as-is).
    """
    content_type = (request.headers.get("content-type") or "").lower()
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        fields: Dict[str, Any] = {}
        upload: Optional[UploadFile] = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "poster" and value.filename:
                    upload = value
                continue
            if key == "poster" and not str(value).strip():
                continue
            fields[key] = value
        return fields, upload

    raw = await request.body()
    if not raw.strip():
        return {}, None
    try:
        data = await request.json()
    except ValueError:
        raise AppException(status_code=status.HTTP_400_BAD_REQUEST, message="Malformed JSON body")
    if not isinstance(data, dict):
        raise AppException(status_code=status.HTTP_400_BAD_REQUEST, message="Request body must be an object")
    return data, None


def _validate(model, data: Dict[str, Any]):
    try:
        return model.model_validate(data)
    except ValidationError as ve:
        raise RequestValidationError(ve.errors(include_url=False))


async def _commit_or_conflict(db: AsyncSession, title: str) -> None:
    """Commit; a unique-index race on the title surfaces as 409."""
    try:
        await db.flush()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateMovieTitleException(title)


# ─────────────────────────────────────────────────────────────────────────────
# 📚 List movies
# ─────────────────────────────────────────────────────────────────────────────
@router.get("", response_model=PaginatedMoviesOut, summary="List movies (newest first)")
@rate_limit("60/minute")
async def list_movies(
    request: Request,
    response: Response,
    page: Optional[str] = Query(None, description="1-based page number"),
    limit: Optional[str] = Query(None, description="Page size (1..100)"),
    page_size: Optional[str] = Query(None, alias="pageSize", description="Page size (1..100); wins over `limit`"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
    posters: PosterResolver = Depends(get_poster_resolver),
):
    """
    Paginated catalog listing. Malformed paging input falls back to defaults
    rather than failing the request.
    """
    set_sensitive_cache(response)

    # ── [Step 1] Resolve paging ─────────────────────────────────────────────
    page_req = resolve(page, limit, page_size)

    # ── [Step 2] Count + fetch ──────────────────────────────────────────────
    rows, meta = await movies_service.list_movies(db, page_req)

    # ── [Step 3] Map to external form (posters signed when ours) ────────────
    return PaginatedMoviesOut(
        data=movies_service.to_movie_outs(rows, posters),
        pagination=PaginationOut.from_metadata(meta),
    )


# ─────────────────────────────────────────────────────────────────────────────
# ➕ Create movie (Idempotency-Key supported)
# ─────────────────────────────────────────────────────────────────────────────
@router.post("", response_model=MovieOut, status_code=status.HTTP_201_CREATED, summary="Create movie")
@rate_limit("10/minute")
async def create_movie(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
    posters: PosterResolver = Depends(get_poster_resolver),
):
    """
    Create a **movie**.

    Steps
    -----
    1) Replay an idempotent snapshot when `Idempotency-Key` matches.
    2) Parse + validate the body; a poster (file or reference) is required.
    3) Title uniqueness guard (409).
    4) Upload the poster file when one was sent.
    5) Persist; an insert race on the title removes the fresh upload and 409s.
    6) Store the idempotency snapshot (best-effort).
    """
    set_sensitive_cache(response)

    # ── [Step 1] Idempotency replay (best-effort) ───────────────────────────
    idem_hdr = request.headers.get("Idempotency-Key")
    idem_key = f"idemp:movies:create:{current_user.id}:{idem_hdr}" if idem_hdr else None
    if idem_key:
        try:
            snap = await redis_wrapper.idempotency_get(idem_key)
        except Exception:
            snap = None
        if snap:
            return JSONResponse(snap, status_code=status.HTTP_201_CREATED, headers={"Cache-Control": "no-store"})

    # ── [Step 2] Parse + validate ───────────────────────────────────────────
    fields, upload = await _read_movie_body(request)
    data: MovieCreateIn = _validate(MovieCreateIn, fields)
    if upload is None and not data.poster:
        raise PosterRejectedException("Poster is required")

    # ── [Step 3] Title uniqueness guard ─────────────────────────────────────
    if await movies_service.title_taken(db, data.title):
        raise DuplicateMovieTitleException(data.title)

    # ── [Step 4] Poster upload ──────────────────────────────────────────────
    poster_ref = await upload_poster(upload, posters) if upload is not None else data.poster

    # ── [Step 5] Persist ────────────────────────────────────────────────────
    movie = Movie(title=data.title, publishing_year=data.publishing_year, poster=poster_ref)
    db.add(movie)
    try:
        await _commit_or_conflict(db, data.title)
    except DuplicateMovieTitleException:
        if upload is not None:
            await run_in_threadpool(posters.schedule_deletion, poster_ref)
        raise
    await db.refresh(movie)

    body = movies_service.to_movie_out(movie, posters)

    # ── [Step 6] Idempotency snapshot (best-effort) ─────────────────────────
    if idem_key:
        try:
            await redis_wrapper.idempotency_set(idem_key, body.model_dump(mode="json", by_alias=True), ttl_seconds=600)
        except Exception:
            pass

    return body


# ─────────────────────────────────────────────────────────────────────────────
# 🔎 Get single movie
# ─────────────────────────────────────────────────────────────────────────────
@router.get("/{movie_id}", response_model=MovieOut, summary="Get movie by id")
@rate_limit("60/minute")
async def get_movie(
    movie_id: UUID,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
    posters: PosterResolver = Depends(get_poster_resolver),
):
    set_sensitive_cache(response)
    movie = await movies_service.get_movie(db, movie_id)
    if movie is None:
        raise MovieNotFoundException(movie_id)
    return movies_service.to_movie_out(movie, posters)


# ─────────────────────────────────────────────────────────────────────────────
# ✏️ Patch movie (stale poster cleanup)
# ─────────────────────────────────────────────────────────────────────────────
@router.patch("/{movie_id}", response_model=MovieOut, summary="Update movie")
@rate_limit("10/minute")
async def update_movie(
    movie_id: UUID,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
    posters: PosterResolver = Depends(get_poster_resolver),
):
    """
    Partially update a **movie**.

    - Enforces redis + row locks.
    - If `title` changes, verifies uniqueness (409).
    - A replaced poster that lives in our bucket is deleted after the
      response is sent; external or unchanged posters are left alone.
    """
    set_sensitive_cache(response)

    # ── [Step 1] Parse + validate updates ───────────────────────────────────
    fields, upload = await _read_movie_body(request)
    payload: MoviePatchIn = _validate(MoviePatchIn, fields)
    updates = payload.changes()
    if not updates and upload is None:
        raise AppException(status_code=status.HTTP_400_BAD_REQUEST, message="No changes provided")

    if await movies_service.get_movie(db, movie_id) is None:
        raise MovieNotFoundException(movie_id)
    if "title" in updates and await movies_service.title_taken(db, updates["title"], exclude_id=movie_id):
        raise DuplicateMovieTitleException(updates["title"])

    # ── [Step 2] Poster upload (outside the lock) ───────────────────────────
    if upload is not None:
        updates["poster"] = await upload_poster(upload, posters)

    # ── [Step 3] Lock + persist ─────────────────────────────────────────────
    async with redis_wrapper.lock(f"lock:movies:update:{movie_id}", timeout=10, blocking_timeout=3):
        movie = await movies_service.get_movie(db, movie_id, for_update=True)
        if movie is None:
            if upload is not None:
                await run_in_threadpool(posters.schedule_deletion, updates["poster"])
            raise MovieNotFoundException(movie_id)
        old_poster = movie.poster
        for k, v in updates.items():
            setattr(movie, k, v)
        try:
            await _commit_or_conflict(db, movie.title)
        except DuplicateMovieTitleException:
            if upload is not None:
                await run_in_threadpool(posters.schedule_deletion, updates["poster"])
            raise
    await db.refresh(movie)

    # ── [Step 4] Stale poster cleanup (after response) ──────────────────────
    if "poster" in updates:
        posters.schedule_deletion_if_replaced(old_poster, movie.poster, background_tasks)

    return movies_service.to_movie_out(movie, posters)


# ─────────────────────────────────────────────────────────────────────────────
# 🗑️ Delete movie
# ─────────────────────────────────────────────────────────────────────────────
@router.delete("/{movie_id}", response_model=MessageOut, summary="Delete movie")
@rate_limit("10/minute")
async def delete_movie(
    movie_id: UUID,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(get_current_user),
    posters: PosterResolver = Depends(get_poster_resolver),
):
    """
    Delete a **movie**; its poster object (when ours) is removed after the
    response is sent.
    """
    set_sensitive_cache(response)

    # ── [Step 1] Lock + delete ──────────────────────────────────────────────
    async with redis_wrapper.lock(f"lock:movies:delete:{movie_id}", timeout=10, blocking_timeout=3):
        movie = await movies_service.get_movie(db, movie_id, for_update=True)
        if movie is None:
            raise MovieNotFoundException(movie_id)
        poster = movie.poster
        await db.delete(movie)
        await db.commit()

    # ── [Step 2] Poster cleanup (after response) ────────────────────────────
    posters.schedule_deletion(poster, background_tasks)

    return MessageOut(message="Movie deleted")


__all__ = ["router"]
