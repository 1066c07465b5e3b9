from __future__ import annotations

"""
MockRedisClient (async) · test-grade, wrapper-compatible
========================================================
Covers the subset of Redis MovieShelf uses:

KV      : get/set (ex, nx)/delete
Health  : ping/close/flushall
Lock    : lock(name, timeout=..., blocking_timeout=..., sleep=...) → MockLock

Values are stored exactly as written; TTLs have second precision.
"""

import secrets
import time
from typing import Any, Dict, Optional


def _now() -> float:
    return time.time()


class MockRedisClient:
    def __init__(self) -> None:
        self.store: Dict[str, Any] = {}
        self.expirations: Dict[str, Optional[float]] = {}
        self._closed = False

    # ── housekeeping ──────────────────────────────────────────
    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._closed = True

    async def flushall(self) -> None:
        self.store.clear()
        self.expirations.clear()

    def _purge_expired(self) -> None:
        for k, exp in list(self.expirations.items()):
            if exp is not None and exp <= _now():
                self.store.pop(k, None)
                self.expirations.pop(k, None)

    # ── KV ────────────────────────────────────────────────────
    async def get(self, key: str) -> Optional[Any]:
        self._purge_expired()
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: Optional[int] = None, nx: bool = False) -> bool:
        self._purge_expired()
        if nx and key in self.store:
            return False
        self.store[key] = value
        self.expirations[key] = _now() + int(ex) if ex is not None else None
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for k in keys:
            removed += int(self.store.pop(k, None) is not None)
            self.expirations.pop(k, None)
        return removed

    def lock(self, name: str, timeout: Optional[int] = None, blocking_timeout: Optional[int] = None, sleep: Optional[float] = None) -> "MockLock":
        return MockLock(self, name, int(timeout or 10))


class MockLock:
    """Tiny async lock with SET NX semantics."""

    def __init__(self, client: MockRedisClient, name: str, timeout: int) -> None:
        self.client = client
        self.name = name
        self.timeout = timeout
        self.token: Optional[str] = None

    async def acquire(self, *_, **__) -> bool:
        token = self.token or secrets.token_urlsafe(12)
        ok = await self.client.set(self.name, token, ex=self.timeout, nx=True)
        if ok:
            self.token = token
        return bool(ok)

    async def release(self) -> None:
        if await self.client.get(self.name) == self.token:
            await self.client.delete(self.name)
            self.token = None


__all__ = ["MockRedisClient", "MockLock"]
