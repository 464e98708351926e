"""Shared rate limiter instance.

Usage submissions are throttled per client address and student. Every
other endpoint uses ``DEFAULT_RATE_LIMIT`` per client address.

Counters live in Redis when it is reachable, so all API instances share
them, and in memory otherwise (development / test environments).
"""

import logging

import redis as sync_redis
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from screenscore.config import settings

logger = logging.getLogger(__name__)


def usage_submission_key(request: Request) -> str:
    """Rate-limit key of a usage submission: client address and student."""
    student_id = request.path_params.get("student_id", "")
    return f"{get_remote_address(request)}:student:{student_id}"


def _create_limiter() -> Limiter:
    try:
        client = sync_redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        client.ping()
        client.close()
    except Exception:
        logger.warning("Rate limiter: Redis unavailable, using in-memory storage")
        return Limiter(key_func=get_remote_address, default_limits=[settings.DEFAULT_RATE_LIMIT])

    logger.info("Rate limiter: Redis storage (%s)", settings.REDIS_URL)
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.DEFAULT_RATE_LIMIT],
        storage_uri=settings.REDIS_URL,
    )


limiter = _create_limiter()
