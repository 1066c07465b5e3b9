# movieshelf/db/base.py
"""
MovieShelf · SQLAlchemy Base registry

Import all ORM models so their tables are registered on `Base.metadata`
for Alembic autogeneration. Import-only; no runtime logic.
"""

from movieshelf.db.base_class import Base
from movieshelf.db.models.user import User
from movieshelf.db.models.movie import Movie

__all__ = ["Base", "User", "Movie"]
