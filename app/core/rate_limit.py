"""Redis-backed rate limiting and in-flight guards."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import HTTPException, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.errors import CheckoutInProgress

logger = logging.getLogger(__name__)


async def enforce_rate_limit(client: Redis, key: str, limit: int, window_seconds: int) -> None:
    """Raise 429 when key exceeds limit inside time window."""
    if limit <= 0:
        return

    now = int(time.time())
    window_key = f"rl:{key}:{now // window_seconds}"

    try:
        count = await client.incr(window_key)
        if count == 1:
            await client.expire(window_key, window_seconds)
    except RedisError:
        # fail-open in local/dev if redis is unavailable
        logger.warning("Rate limiter unavailable for %s", key)
        return
    if count > limit:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")


@asynccontextmanager
async def in_flight(client: Redis, key: str, ttl_seconds: int) -> AsyncIterator[None]:
    """Reject a second request for `key` while the first is still running."""
    flag = f"inflight:{key}"
    if not await client.set(flag, "1", nx=True, ex=ttl_seconds):
        raise CheckoutInProgress()
    try:
        yield
    finally:
        await client.delete(flag)
