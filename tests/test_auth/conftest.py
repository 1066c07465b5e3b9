# tests/test_auth/conftest.py

import importlib
import uuid
from typing import Any, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient


class _Result:
    def __init__(self, value):
        self._value = value

    def scalar_one_or_none(self):
        return self._value


class FakeDB:
    """Answers every SELECT with `lookup`; assigns ids on flush."""

    def __init__(self, lookup: Any = None):
        self.lookup = lookup
        self.added: List[Any] = []
        self.commit_calls = 0
        self.rollback_calls = 0
        self.fail_commit_with: Optional[Exception] = None

    async def execute(self, stmt):
        return _Result(self.lookup)

    def add(self, obj):
        self.added.append(obj)

    async def flush(self):
        for obj in self.added:
            if getattr(obj, "id", None) is None:
                obj.id = uuid.uuid4()

    async def commit(self):
        self.commit_calls += 1
        if self.fail_commit_with is not None:
            raise self.fail_commit_with

    async def rollback(self):
        self.rollback_calls += 1


class AuthEnv:
    def __init__(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "1")

        self.auth = importlib.import_module("movieshelf.api.v1.routers.auth")
        self.signup = importlib.import_module("movieshelf.api.v1.routers.auth.signup")

        self.app = FastAPI()
        self.app.include_router(self.auth.router, prefix="/api/v1")
        self.db = FakeDB()
        self.app.dependency_overrides[self.signup.get_async_db] = lambda: self.db
        self.client = TestClient(self.app)


@pytest.fixture
def auth_env(monkeypatch, redis_client) -> AuthEnv:
    return AuthEnv(monkeypatch)
