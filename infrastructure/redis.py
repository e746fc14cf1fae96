"""Async Redis access for the web process and Celery tasks.

Used for the distributed sweeper lock and, when configured, the shared
rate limiter. Every task runs in its own event loop, so tasks create a
private client with `create_redis_client()`; the web process registers
one module-level client in its lifespan.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging
import uuid

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = (
    "if redis.call('GET', KEYS[1]) == ARGV[1] then"
    " return redis.call('DEL', KEYS[1])"
    " else return 0 end"
)


class RedisClient:
    """Async Redis client wrapper with lifecycle management and locks.

    Usage:
        client = RedisClient.from_url("redis://localhost:6379/2")
        await client.init()
        async with client.hold_lock("pixelwar:sweeper:lock") as acquired:
            ...
        await client.close()
    """

    def __init__(self, url: str, *, decode_responses: bool = True):
        self.url = url
        self.decode_responses = decode_responses
        self._client: Optional[redis.Redis] = None

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisClient":
        return cls(url, **kwargs)

    async def init(self) -> None:
        """Open the connection and check it answers. Must be awaited."""
        if self._client is not None:
            return
        self._client = redis.from_url(self.url, decode_responses=self.decode_responses)
        await self._client.ping()

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None

    def get(self) -> redis.Redis:
        """Return the underlying `redis.Redis` client. Raises if not initialized."""
        if self._client is None:
            raise RuntimeError("Redis client not initialized; call init() first")
        return self._client

    # ------ distributed lock helpers ------

    async def acquire_lock(self, key: str, timeout_ms: int = 10_000) -> str:
        """
        Acquire a lock on `key` that expires after `timeout_ms`.
        Returns the owner token. Raises RuntimeError if the lock is held.
        """
        token = str(uuid.uuid4())
        acquired = await self.get().set(key, token, nx=True, px=timeout_ms)
        if acquired:
            return token
        raise RuntimeError("Lock not acquired")

    async def release_lock(self, key: str, token: str) -> bool:
        """Release `key` only if it is still held by `token`."""
        res = await self.get().eval(_RELEASE_SCRIPT, 1, key, token)
        return res == 1

    @asynccontextmanager
    async def hold_lock(self, key: str, timeout_ms: int = 10_000) -> AsyncIterator[bool]:
        """Hold `key` for the duration of the block; yields False if it is taken."""
        try:
            token = await self.acquire_lock(key, timeout_ms)
        except RuntimeError:
            yield False
            return
        try:
            yield True
        finally:
            if not await self.release_lock(key, token):
                logger.warning(f"Lock {key} expired before it was released")


# Module-level default client for the web process
_default_client: Optional[RedisClient] = None


def create_redis_client(url: str, *, decode_responses: bool = True) -> RedisClient:
    """Create (but do not init) a RedisClient."""
    return RedisClient(url, decode_responses=decode_responses)


async def init_default_redis(url: str, *, decode_responses: bool = True) -> RedisClient:
    """Initialize and register the module-level default RedisClient."""
    global _default_client
    if _default_client is None:
        _default_client = RedisClient(url, decode_responses=decode_responses)
    await _default_client.init()
    return _default_client


def get_default_redis() -> RedisClient:
    if _default_client is None:
        raise RuntimeError("Default Redis client not initialized; call init_default_redis()")
    return _default_client


async def close_default_redis() -> None:
    global _default_client
    if _default_client is not None:
        await _default_client.close()
        _default_client = None
