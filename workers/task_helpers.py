"""Helpers for running engine coroutines from synchronous Celery tasks."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import config
from infrastructure.redis import LockNotAcquired, RedisClient
from services.engine import GameEngine

logger = logging.getLogger(__name__)

SWEEP_LOCK_TIMEOUT_MS = 10 * 60 * 1000


async def _with_engine(work: Callable[[GameEngine], Awaitable[Any]], timeout: float) -> Any:
    engine = await GameEngine.open(config.DB_PATH)
    try:
        return await asyncio.wait_for(work(engine), timeout=timeout)
    finally:
        await engine.close()


def run_with_engine(work: Callable[[GameEngine], Awaitable[Any]], *, timeout: float = 45.0) -> Any:
    """Open an engine in a fresh event loop, run `work(engine)`, close it."""
    return asyncio.run(_with_engine(work, timeout))


async def _locked(key: str, work: Callable[[GameEngine], Awaitable[Any]], timeout: float) -> Optional[Any]:
    client = RedisClient.from_url(config.REDIS_URL)
    await client.init()
    try:
        async with client.lock(key, timeout_ms=SWEEP_LOCK_TIMEOUT_MS):
            return await _with_engine(work, timeout)
    except LockNotAcquired:
        logger.info(f"[WORKER] {key} held by another worker; skipping run")
        return None
    finally:
        await client.close()


def run_exclusive(key: str, work: Callable[[GameEngine], Awaitable[Any]], *, timeout: float = 45.0) -> Optional[Any]:
    """Like run_with_engine, but only one worker at a time holds `key`.

    Returns None when another worker holds the lock.
    """
    return asyncio.run(_locked(key, work, timeout))
