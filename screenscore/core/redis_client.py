"""Async Redis client and the class policy cache built on it.

Class policies are cached as JSON under ``policy:class:<class_id>``.
If Redis is unavailable (e.g. in development or tests), or a cache call
fails, reads miss and writes are dropped: policies are then read straight
from the database.
"""

import json
import logging
import uuid

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from screenscore.config import settings

logger = logging.getLogger(__name__)

POLICY_KEY_PREFIX = "policy:class:"

_redis: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis | None:
    """Return the shared Redis client, or None if Redis is unavailable."""
    global _redis
    if _redis is None:
        try:
            client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
            await client.ping()
            _redis = client
            logger.info("Redis connected at %s", settings.REDIS_URL)
        except Exception:
            logger.warning("Redis unavailable, policy cache disabled (%s)", settings.REDIS_URL)
            _redis = None
    return _redis


async def close_redis() -> None:
    """Close the Redis connection on application shutdown."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Redis connection closed")


def policy_key(class_id: uuid.UUID) -> str:
    return f"{POLICY_KEY_PREFIX}{class_id}"


async def read_cached_policy(class_id: uuid.UUID) -> dict | None:
    """Return the cached policy dict of a class, or None on a miss."""
    redis = await get_redis()
    if redis is None:
        return None
    try:
        cached = await redis.get(policy_key(class_id))
    except RedisError:
        logger.warning("Policy cache read failed for class %s", class_id, exc_info=True)
        return None
    return json.loads(cached) if cached else None


async def write_cached_policy(class_id: uuid.UUID, policy: dict) -> None:
    redis = await get_redis()
    if redis is None:
        return
    try:
        await redis.setex(
            policy_key(class_id), settings.POLICY_CACHE_TTL_SECONDS, json.dumps(policy),
        )
    except RedisError:
        logger.warning("Policy cache write failed for class %s", class_id, exc_info=True)


async def drop_cached_policy(class_id: uuid.UUID) -> None:
    """Remove a class policy from the cache after a class or app list change.

    A failed delete leaves the stale entry to expire after
    ``POLICY_CACHE_TTL_SECONDS``.
    """
    redis = await get_redis()
    if redis is None:
        return
    try:
        await redis.delete(policy_key(class_id))
    except RedisError:
        logger.warning("Policy cache delete failed for class %s", class_id, exc_info=True)
        return
    logger.debug("Policy cache invalidated for class %s", class_id)
