"""Per-identifier sliding-window rate limiting.

Each identifier keeps a log of request instants (epoch milliseconds). A
call prunes instants older than the window, rejects when the remaining
count has reached the limit, and otherwise records itself. State lives in
process memory by default and is lost on restart; `RedisRateLimiter`
offers the same contract shared across processes.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional
import logging
import threading
import uuid

from infrastructure.redis import RedisClient
from utils.time import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    reset_at: Optional[float] = None  # epoch ms at which a slot frees up


class RateLimiter(ABC):

    @abstractmethod
    async def admit(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        """Record a request for `identifier` if the window has room."""


class _Slot:
    __slots__ = ("lock", "users", "window_ms")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0
        self.window_ms = 0


class SlidingWindowRateLimiter(RateLimiter):
    """In-memory sliding-window log with one critical section per identifier.

    Identifiers whose log has fully expired are dropped every
    `purge_every` calls. A slot is only removed while no caller holds or
    waits on its lock.
    """

    def __init__(self, clock: Callable[[], float] = now_ms, purge_every: int = 1024):
        self._clock = clock
        self._purge_every = purge_every
        self._calls = 0
        self._entries: dict[str, list[float]] = {}
        self._slots: dict[str, _Slot] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _section(self, identifier: str) -> Iterator[_Slot]:
        with self._registry_lock:
            slot = self._slots.get(identifier)
            if slot is None:
                slot = self._slots[identifier] = _Slot()
            slot.users += 1
        try:
            with slot.lock:
                yield slot
        finally:
            with self._registry_lock:
                slot.users -= 1
                if slot.users == 0 and not self._entries.get(identifier):
                    self._slots.pop(identifier, None)
                    self._entries.pop(identifier, None)

    def check(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        with self._section(identifier) as slot:
            now = self._clock()
            slot.window_ms = window_ms
            window_start = now - window_ms
            timestamps = [ts for ts in self._entries.get(identifier, []) if ts > window_start]

            if len(timestamps) >= max_requests:
                self._entries[identifier] = timestamps
                result = RateLimitResult(
                    allowed=False,
                    reset_at=timestamps[0] + window_ms if timestamps else now + window_ms,
                )
            else:
                timestamps.append(now)
                self._entries[identifier] = timestamps
                result = RateLimitResult(allowed=True)

        self._calls += 1
        if self._purge_every and self._calls % self._purge_every == 0:
            self.purge_idle()
        return result

    async def admit(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        return self.check(identifier, max_requests, window_ms)

    def purge_idle(self) -> int:
        """Drop identifiers whose whole log is outside their window."""
        now = self._clock()
        dropped = 0
        with self._registry_lock:
            for identifier, slot in list(self._slots.items()):
                if slot.users:
                    continue
                timestamps = self._entries.get(identifier)
                if not timestamps or timestamps[-1] <= now - slot.window_ms:
                    del self._slots[identifier]
                    self._entries.pop(identifier, None)
                    dropped += 1
        if dropped:
            logger.debug(f"Rate limiter dropped {dropped} idle identifiers")
        return dropped

    def tracked(self) -> int:
        """Number of identifiers currently holding state."""
        with self._registry_lock:
            return len(self._slots)

    def state(self, identifier: str) -> Optional[list[float]]:
        """Current request log for `identifier` (for debugging)."""
        with self._registry_lock:
            entry = self._entries.get(identifier)
            return list(entry) if entry is not None else None

    def clear(self) -> None:
        with self._registry_lock:
            self._entries.clear()
            self._slots.clear()


# Prune, count and record in one server-side step so two processes cannot
# both see the last free slot.
_SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
if redis.call('ZCARD', key) >= limit then
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    return {0, oldest[2]}
end
redis.call('ZADD', key, now, ARGV[4])
redis.call('PEXPIRE', key, window)
return {1, '0'}
"""


class RedisRateLimiter(RateLimiter):
    """Sliding-window log stored in a Redis sorted set per identifier."""

    def __init__(self, client: RedisClient, *, prefix: str = "ratelimit:", clock: Callable[[], float] = now_ms):
        self.client = client
        self.prefix = prefix
        self._clock = clock

    async def admit(self, identifier: str, max_requests: int, window_ms: int) -> RateLimitResult:
        now = self._clock()
        member = f"{now}:{uuid.uuid4().hex}"
        allowed, oldest = await self.client.get().eval(
            _SLIDING_WINDOW_SCRIPT,
            1,
            f"{self.prefix}{identifier}",
            now,
            window_ms,
            max_requests,
            member,
        )
        if int(allowed) == 1:
            return RateLimitResult(allowed=True)
        return RateLimitResult(allowed=False, reset_at=float(oldest) + window_ms)


# Module-level limiter used by the routes; replaced at startup when the
# Redis backend is configured.
_default_limiter: RateLimiter = SlidingWindowRateLimiter()


def set_rate_limiter(limiter: RateLimiter) -> None:
    global _default_limiter
    _default_limiter = limiter
    logger.info(f"Rate limiter set to {limiter.__class__.__name__}")


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the active rate limiter."""
    return _default_limiter
