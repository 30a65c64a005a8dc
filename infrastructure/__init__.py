"""Infrastructure helpers (Redis, etc.)

Expose a small public surface for Redis helpers used by workers and the
notification dispatcher.
"""
from .redis import (
    RedisClient,
    LockNotAcquired,
    create_redis_client,
)

__all__ = [
    "RedisClient",
    "LockNotAcquired",
    "create_redis_client",
]
