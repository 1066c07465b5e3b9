# movieshelf/services/movies_service.py
from __future__ import annotations

"""
Movie catalog queries and mapping.

Routers own the request flow (locks, idempotency, cleanup scheduling); this
module owns the SQL and the record → external form mapping.
"""

import logging
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from movieshelf.db.models.movie import Movie
from movieshelf.schemas.movies import MovieOut
from movieshelf.services.pagination import PageMetadata, PageRequest, build_metadata
from movieshelf.services.posters import PosterResolver

logger = logging.getLogger(__name__)


async def title_taken(db: AsyncSession, title: str, *, exclude_id: Optional[UUID] = None) -> bool:
    """Case-insensitive title existence check (optionally excluding a row)."""
    stmt = select(Movie.id).where(func.lower(Movie.title) == title.strip().lower())
    if exclude_id is not None:
        stmt = stmt.where(Movie.id != exclude_id)
    return (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def get_movie(db: AsyncSession, movie_id: UUID, *, for_update: bool = False) -> Optional[Movie]:
    stmt = select(Movie).where(Movie.id == movie_id)
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def count_movies(db: AsyncSession) -> int:
    return int((await db.execute(select(func.count()).select_from(Movie))).scalar_one())


async def fetch_page(db: AsyncSession, page: PageRequest) -> Sequence[Movie]:
    """Newest first; ties broken by id so pages are stable."""
    stmt = (
        select(Movie)
        .order_by(Movie.created_at.desc(), Movie.id.desc())
        .offset(page.skip)
        .limit(page.size)
    )
    return (await db.execute(stmt)).scalars().all()


async def list_movies(db: AsyncSession, page: PageRequest) -> Tuple[Sequence[Movie], PageMetadata]:
    total = await count_movies(db)
    rows = await fetch_page(db, page) if page.skip < total else []
    return rows, build_metadata(page.page, page.size, total)


def to_movie_out(movie: Movie, resolver: PosterResolver) -> MovieOut:
    """External form: the poster is signed when it is ours, else passed through."""
    return MovieOut(
        id=movie.id,
        title=movie.title,
        publishing_year=movie.publishing_year,
        poster=resolver.present(movie.poster),
        created_at=movie.created_at,
        updated_at=movie.updated_at,
    )


def to_movie_outs(movies: Sequence[Movie], resolver: PosterResolver) -> List[MovieOut]:
    return [to_movie_out(m, resolver) for m in movies]


__all__ = [
    "title_taken",
    "get_movie",
    "count_movies",
    "fetch_page",
    "list_movies",
    "to_movie_out",
    "to_movie_outs",
]
