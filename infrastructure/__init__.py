"""Infrastructure helpers (Redis, etc.)

Expose a small public surface for Redis helpers used by workers and app startup.
"""
from .redis import (
    RedisClient,
    create_redis_client,
    init_default_redis,
    get_default_redis,
    close_default_redis,
)

__all__ = [
    "RedisClient",
    "create_redis_client",
    "init_default_redis",
    "get_default_redis",
    "close_default_redis",
]
