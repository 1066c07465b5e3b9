# tests/test_movies/conftest.py

import importlib
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from movieshelf.services.posters import PosterResolver
from movieshelf.utils.aws import S3Client

BUCKET = "test-bucket"
REGION = "us-east-1"


def owned_url(key: str) -> str:
    return f"https://{BUCKET}.s3.{REGION}.amazonaws.com/{key}"


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeDB:
    def __init__(self):
        self.added: List[Any] = []
        self.deleted: List[Any] = []
        self.commit_calls = 0
        self.rollback_calls = 0
        self.fail_commit_with: Optional[Exception] = None

    def add(self, obj):
        self.added.append(obj)

    async def flush(self):
        return None

    async def commit(self):
        self.commit_calls += 1
        if self.fail_commit_with is not None:
            raise self.fail_commit_with

    async def rollback(self):
        self.rollback_calls += 1

    async def refresh(self, obj):
        now = datetime.now(timezone.utc)
        if getattr(obj, "id", None) is None:
            obj.id = uuid.uuid4()
        if getattr(obj, "created_at", None) is None:
            obj.created_at = now
        obj.updated_at = now

    async def delete(self, obj):
        self.deleted.append(obj)


class FakeUser:
    def __init__(self):
        self.id = uuid.uuid4()
        self.is_active = True


class Locks:
    """Records lock usage and idempotency snapshots."""

    def __init__(self):
        self.lock_calls: List[Tuple[str, Optional[int], Optional[int]]] = []
        self.snapshots: Dict[str, Any] = {}

    def lock(self, key: str, *, timeout: Optional[int] = None, blocking_timeout: Optional[int] = None):
        self.lock_calls.append((key, timeout, blocking_timeout))

        class _CM:
            async def __aenter__(self_inner):
                return self_inner

            async def __aexit__(self_inner, exc_type, exc, tb):
                return False

        return _CM()

    async def idempotency_get(self, key):
        return self.snapshots.get(key)

    async def idempotency_set(self, key, value, *, ttl_seconds=600):
        self.snapshots[key] = value


class FakeMovie:
    def __init__(self, title="Dune", publishing_year=2021, poster=None, created_at=None):
        now = datetime.now(timezone.utc)
        self.id = uuid.uuid4()
        self.title = title
        self.publishing_year = publishing_year
        self.poster = poster if poster is not None else owned_url("posters/1-dune.jpg")
        self.created_at = created_at or now
        self.updated_at = now


def integrity_error() -> IntegrityError:
    return IntegrityError("INSERT", {}, Exception("duplicate key value violates unique constraint"))


class Env:
    """Everything a movies-router test needs to arrange and assert."""

    def __init__(self, monkeypatch):
        self.mod = importlib.import_module("movieshelf.api.v1.routers.movies")
        self.svc = importlib.import_module("movieshelf.services.movies_service")

        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "1")

        self.locks = Locks()
        monkeypatch.setattr(self.mod, "redis_wrapper", self.locks, raising=False)

        self.s3 = MagicMock()
        self.s3.generate_presigned_url.side_effect = lambda **kw: f"https://signed.example/{kw['Params']['Key']}"
        self.resolver = PosterResolver(S3Client(BUCKET, region_name=REGION, client=self.s3))

        # In-memory catalog behind the service functions the router calls
        self.movies: Dict[uuid.UUID, FakeMovie] = {}
        self.get_calls: List[Tuple[uuid.UUID, bool]] = []

        async def _get_movie(db, movie_id, *, for_update=False):
            self.get_calls.append((movie_id, for_update))
            return self.movies.get(movie_id)

        async def _title_taken(db, title, *, exclude_id=None):
            t = title.strip().lower()
            return any(m.title.lower() == t and m.id != exclude_id for m in self.movies.values())

        monkeypatch.setattr(self.svc, "get_movie", _get_movie)
        monkeypatch.setattr(self.svc, "title_taken", _title_taken)

        self.app = FastAPI()
        self.app.include_router(self.mod.router, prefix="/api/v1")

        self.db = FakeDB()
        self.user = FakeUser()
        self.app.dependency_overrides[self.mod.get_async_db] = lambda: self.db
        self.app.dependency_overrides[self.mod.get_current_user] = lambda: self.user
        self.app.dependency_overrides[self.mod.get_poster_resolver] = lambda: self.resolver

        self.client = TestClient(self.app)

    def seed(self, **kwargs) -> FakeMovie:
        movie = FakeMovie(**kwargs)
        self.movies[movie.id] = movie
        return movie

    def deleted_keys(self) -> List[str]:
        return [c.kwargs["Key"] for c in self.s3.delete_object.call_args_list]


@pytest.fixture
def env(monkeypatch) -> Env:
    return Env(monkeypatch)
