from __future__ import annotations

"""
🎬 MovieShelf · Movie
====================

A catalog entry: title, publishing year and a poster reference.

`poster` holds either a bare storage key or a full URL (our own bucket or an
external host); the poster resolver decides at read time whether it can be
signed.
"""

from sqlalchemy import CheckConstraint, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from movieshelf.db.base_class import Base, TimestampMixin, UUIDPKMixin


class Movie(UUIDPKMixin, TimestampMixin, Base):
    __tablename__ = "movies"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    publishing_year: Mapped[int] = mapped_column(Integer, nullable=False)
    poster: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("uq_movies_title_lower", func.lower(text("title")), unique=True),
        Index("ix_movies_created_at", "created_at"),
        CheckConstraint("length(btrim(title)) > 0", name="title_not_blank"),
        CheckConstraint("publishing_year >= 1888", name="publishing_year_min"),
    )
