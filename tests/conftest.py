# tests/conftest.py
"""
Global test bootstrap
- Sets the env MovieShelf settings need before anything imports them
- Mounts a mock Redis client into movieshelf.core.redis_client
- Bypasses SlowAPI limits unless a test opts in
"""

from __future__ import annotations

import os
import random

import pytest

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env (set BEFORE importing movieshelf so settings pick it up)
# ──────────────────────────────────────────────────────────────────────────────
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-movieshelf-tests-0123456789")
os.environ.setdefault("POSTGRES_PASSWORD", "postgres")
os.environ.setdefault("AWS_BUCKET_NAME", "test-bucket")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("ENABLE_HTTPS_REDIRECT", "false")
os.environ.setdefault("RATELIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_TEST_BYPASS", "1")
os.environ.setdefault("DEFAULT_RATE_LIMIT", "10000/minute")
os.environ.setdefault("RATE_LIMIT_NAMESPACE", f"pytest-{random.getrandbits(32)}")

# ──────────────────────────────────────────────────────────────────────────────
# 🧪 Install mock Redis globally before any tests run
# ──────────────────────────────────────────────────────────────────────────────
from movieshelf.core.redis_client import redis_wrapper  # noqa: E402
from tests.fixtures.mocks.redis import MockRedisClient  # noqa: E402

redis_wrapper._client = MockRedisClient()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def redis_client():
    """The shared mock client, cleared before and after each test."""
    client = redis_wrapper.client
    client.store.clear()
    client.expirations.clear()
    yield client
    client.store.clear()
    client.expirations.clear()


@pytest.fixture()
def ratelimit_on(monkeypatch):
    """Enforce rate limits for tests that assert 429s."""
    monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "0")
    yield
    monkeypatch.setenv("RATE_LIMIT_TEST_BYPASS", "1")
