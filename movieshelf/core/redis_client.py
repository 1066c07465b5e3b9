# movieshelf/core/redis_client.py
from __future__ import annotations

"""
MovieShelf · Redis Client (Async)
=================================
Central access point for Redis in the app.

What this provides
------------------
• Connection manager with retries & backoff
• **Idempotency** snapshots (JSON set/get) for replayed POSTs
• Async **distributed lock** (native lock preferred; `SET NX` fallback)

Public API (imported as `redis_wrapper`)
----------------------------------------
- await redis_wrapper.connect() / await redis_wrapper.close() / await redis_wrapper.is_connected()
- redis_wrapper.client
- await redis_wrapper.idempotency_set(key, value, ttl_seconds=600)
- await redis_wrapper.idempotency_get(key)
- async with redis_wrapper.lock(name, timeout=10, blocking_timeout=3): ...

Failure semantics
-----------------
• Locks are strict: built-in `TimeoutError` if not acquired in time.
• Snapshots tolerate bytes/str payloads and unparsable values.
"""

import asyncio
import inspect
import json
import logging
import os
import random
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from movieshelf.core.config import settings

logger = logging.getLogger(__name__)

MAX_RETRIES = int(os.getenv("REDIS_CONNECT_MAX_RETRIES", "5"))
BASE_DELAY = float(os.getenv("REDIS_CONNECT_BASE_DELAY", "0.3"))
SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "3"))
CLIENT_NAME = os.getenv("REDIS_CLIENT_NAME", "movieshelf-api")


class RedisClient:
    """Singleton Redis connection manager (asyncio)."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._client: Optional[redis.Redis] = None

    # ── lifecycle ────────────────────────────────────────────────────────────
    async def connect(self) -> None:
        """Establish a connection with retries; reuse a healthy client."""
        if self._client:
            try:
                await self._client.ping()
                return
            except Exception:
                self._client = None

        last_err: Optional[Exception] = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                self._client = redis.Redis.from_url(
                    self.redis_url.strip(),
                    decode_responses=True,
                    socket_timeout=SOCKET_TIMEOUT,
                    socket_connect_timeout=SOCKET_TIMEOUT,
                    retry_on_timeout=True,
                    client_name=CLIENT_NAME,
                )
                await self._client.ping()
                logger.info("Connected to Redis")
                return
            except Exception as e:  # noqa: BLE001
                last_err = e
                delay = min(3.0, BASE_DELAY * (2 ** (attempt - 1))) + random.uniform(0, 0.25)
                logger.warning("Redis connect attempt %s/%s failed: %r (retrying in %.2fs)", attempt, MAX_RETRIES, e, delay)
                await asyncio.sleep(delay)

        self._client = None
        raise RuntimeError("Redis connection failed") from last_err

    async def close(self) -> None:
        if not self._client:
            return
        try:
            await self._client.close()
            logger.info("Redis connection closed")
        except RedisError as e:
            logger.warning("Error closing Redis connection: %s", e)
        finally:
            self._client = None

    async def is_connected(self) -> bool:
        """Return True if `PING` succeeds."""
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    @property
    def client(self):
        """Low-level client; `connect()` must have run at startup."""
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call connect() first.")
        return self._client

    # ── idempotency ─────────────────────────────────────────────────────────
    async def idempotency_set(self, key: str, value: Any, *, ttl_seconds: int = 600) -> None:
        """Store a JSON snapshot (atomic SET with EX)."""
        payload = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
        await self.client.set(key, payload, ex=ttl_seconds)

    async def idempotency_get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        if raw is None:
            return None
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        try:
            return json.loads(raw)
        except ValueError:
            return None

    # ── lock ────────────────────────────────────────────────────────────────
    @asynccontextmanager
    async def lock(self, name: str, *, timeout: int = 10, blocking_timeout: int = 3, sleep: float = 0.2):
        """
        Async distributed lock.

        Steps
        -----
        - **[Step 1]** Native `client.lock(...)` when available.
        - **[Step 2]** Otherwise a `SET NX EX` spin-lock with an owner token.
        - **[Step 3]** Owner-only release on exit (best-effort).
        """
        rc = self.client

        # ── [Step 1] Native lock ─────────────────────────────────────────────
        if hasattr(rc, "lock"):
            lock_obj = rc.lock(name, timeout=timeout, blocking_timeout=blocking_timeout, sleep=sleep)
            res = lock_obj.acquire(blocking=True, blocking_timeout=blocking_timeout)
            acquired = bool(await res if inspect.isawaitable(res) else res)
            if not acquired:
                raise TimeoutError(f"Failed to acquire lock: {name}")
            try:
                yield
            finally:
                try:
                    rel = lock_obj.release()
                    if inspect.isawaitable(rel):
                        await rel
                except Exception:
                    logger.debug("Redis lock release failed (best-effort)", exc_info=True)
            return

        # ── [Step 2] SET NX spin-lock ───────────────────────────────────────
        token = f"{time.time_ns()}-{os.getpid()}-{random.randint(0, 1_000_000)}"
        deadline = time.monotonic() + max(0.0, float(blocking_timeout))
        acquired = False
        while time.monotonic() < deadline:
            if await rc.set(name, token, ex=int(timeout), nx=True):
                acquired = True
                break
            await asyncio.sleep(sleep)
        if not acquired:
            raise TimeoutError(f"Failed to acquire lock: {name}")

        try:
            yield
        finally:
            # ── [Step 3] Owner-only release ─────────────────────────────────
            try:
                if await rc.get(name) == token:
                    await rc.delete(name)
            except Exception:
                logger.debug("Redis lock release failed (best-effort)", exc_info=True)


redis_wrapper = RedisClient(settings.REDIS_URL)
