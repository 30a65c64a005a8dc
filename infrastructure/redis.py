from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import json
import logging
import uuid

try:
    import redis.asyncio as redis
except ImportError as e:
    raise ImportError(
        "redis.asyncio is required for infrastructure.redis. Install 'redis>=4.2.0'."
    ) from e

logger = logging.getLogger(__name__)


class LockNotAcquired(RuntimeError):
    """Another holder owns the lock."""


class RedisClient:
    """Async Redis client wrapper with lifecycle management, locks and pub/sub.

    Usage:
        client = RedisClient.from_url("redis://localhost:6379/2")
        await client.init()
        async with client.lock("phonetag:sweep"):
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
        """Initialize the underlying redis connection. Must be awaited."""
        if self._client is not None:
            return
        self._client = redis.from_url(self.url, decode_responses=self.decode_responses)
        # verify connectivity
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

    # ------ pub/sub ------

    async def publish_json(self, channel: str, message: dict) -> int:
        """Publish `message` as JSON; returns the number of subscribers reached."""
        return await self.get().publish(channel, json.dumps(message))

    # ------ distributed lock helpers ------

    async def acquire_lock(self, key: str, timeout_ms: int = 10_000) -> str:
        """
        Acquire a lock on `key`. Returns a token string when acquired.
        Raises LockNotAcquired if someone else holds it.
        """
        token = str(uuid.uuid4())
        # SET key token NX PX timeout_ms
        acquired = await self.get().set(key, token, nx=True, px=timeout_ms)
        if acquired:
            return token
        raise LockNotAcquired(key)

    async def release_lock(self, key: str, token: str) -> bool:
        """
        Release a lock only if `token` matches the stored value.
        Uses a Lua script to ensure atomicity. Returns True if released.
        """
        script = (
            "if redis.call('GET', KEYS[1]) == ARGV[1] then"
            " return redis.call('DEL', KEYS[1])"
            " else return 0 end"
        )
        res = await self.get().eval(script, 1, key, token)
        return res == 1

    @asynccontextmanager
    async def lock(self, key: str, timeout_ms: int = 10_000) -> AsyncIterator[str]:
        token = await self.acquire_lock(key, timeout_ms)
        try:
            yield token
        finally:
            if not await self.release_lock(key, token):
                logger.warning(f"[REDIS] Lock {key} expired before release")


def create_redis_client(url: str, *, decode_responses: bool = True) -> RedisClient:
    """Create (but do not init) a RedisClient. Use `init()` to open."""
    return RedisClient(url, decode_responses=decode_responses)
