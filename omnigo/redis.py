"""
Redis client configuration using redis-py (asyncio).
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import logging

from redis import asyncio as aioredis
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from omnigo.config import settings

logger = logging.getLogger(__name__)

COMPLETION_CLAIM_PREFIX = "pi:completion:"


class RedisClient:
    """Async Redis client wrapper."""
    
    _client: Optional[Redis] = None
    
    @classmethod
    def get_client(cls) -> Redis:
        """Get or create Redis client."""
        if cls._client is None:
            cls._client = aioredis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5.0,
                health_check_interval=30
            )
            logger.info("Redis client initialized")
            
        return cls._client

    @classmethod
    async def close(cls):
        """Close Redis client."""
        if cls._client:
            await cls._client.close()
            cls._client = None
            logger.info("Redis client closed")


async def get_redis() -> Redis:
    """Dependency for getting redis connection."""
    return RedisClient.get_client()


async def claim_completion(redis: Redis, payment_id: str) -> bool:
    """
    Claim the right to run completion processing for a payment.
    
    Returns False only when another caller holds a live claim. Redis errors
    fail open: the unique order constraint still prevents duplicates.
    """
    try:
        acquired = await redis.set(
            f"{COMPLETION_CLAIM_PREFIX}{payment_id}",
            "1",
            nx=True,
            ex=settings.completion_claim_ttl_seconds,
        )
        return bool(acquired)
    except RedisError as e:
        logger.warning(f"Completion claim unavailable for {payment_id}: {e}")
        return True


async def release_completion(redis: Redis, payment_id: str) -> None:
    """Release a completion claim taken with claim_completion."""
    try:
        await redis.delete(f"{COMPLETION_CLAIM_PREFIX}{payment_id}")
    except RedisError as e:
        logger.warning(f"Failed to release completion claim for {payment_id}: {e}")


@asynccontextmanager
async def completion_claim(redis: Redis, payment_id: str) -> AsyncGenerator[bool, None]:
    """
    Hold the completion claim for the duration of the block.
    Yields whether it was acquired; only an acquired claim is released.
    """
    acquired = await claim_completion(redis, payment_id)
    try:
        yield acquired
    finally:
        if acquired:
            await release_completion(redis, payment_id)
