# movieshelf/db/models/__init__.py
from .user import User
from .movie import Movie

__all__ = ["User", "Movie"]
