# movieshelf/schemas/movies.py

from datetime import datetime, timezone
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import AfterValidator, Field, computed_field, model_validator

from movieshelf.schemas.base import CamelModel
from movieshelf.services.pagination import PageMetadata

MIN_PUBLISHING_YEAR = 1888


def _check_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title is required")
    if len(v) > 255:
        raise ValueError("Title must be at most 255 characters")
    return v


def _check_year(v: int) -> int:
    current = datetime.now(timezone.utc).year
    if v < MIN_PUBLISHING_YEAR or v > current:
        raise ValueError(f"Publishing year must be between {MIN_PUBLISHING_YEAR} and {current}")
    return v


def _check_poster(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Poster is required")
    return v


Title = Annotated[str, AfterValidator(_check_title)]
PublishingYear = Annotated[int, AfterValidator(_check_year)]
PosterRef = Annotated[str, AfterValidator(_check_poster)]


# ──────────────── Inputs ────────────────
class MovieCreateIn(CamelModel):
    title: Title
    publishing_year: PublishingYear
    # Absent when the poster arrives as a multipart file.
    poster: Optional[PosterRef] = None


class MoviePatchIn(CamelModel):
    title: Optional[Title] = None
    publishing_year: Optional[PublishingYear] = None
    poster: Optional[PosterRef] = None

    @model_validator(mode="after")
    def _no_explicit_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# ──────────────── Outputs ────────────────
class MovieOut(CamelModel):
    id: UUID
    title: str
    publishing_year: int
    poster: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PaginationOut(CamelModel):
    """Canonical page metadata plus the legacy aliases older clients read."""

    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @computed_field(alias="page")
    @property
    def page(self) -> int:
        return self.current_page

    @computed_field(alias="lastPage")
    @property
    def last_page(self) -> int:
        return self.total_pages

    @computed_field(alias="total")
    @property
    def total(self) -> int:
        return self.total_items

    @computed_field(alias="pageSize")
    @property
    def page_size(self) -> int:
        return self.items_per_page

    @classmethod
    def from_metadata(cls, meta: PageMetadata) -> "PaginationOut":
        return cls(
            current_page=meta.current_page,
            total_pages=meta.total_pages,
            total_items=meta.total_items,
            items_per_page=meta.items_per_page,
        )


class PaginatedMoviesOut(CamelModel):
    data: List[MovieOut] = Field(default_factory=list)
    pagination: PaginationOut


class MessageOut(CamelModel):
    message: str
