"""Optional Redis connection used for login rate limiting."""

from __future__ import annotations

import logging
from functools import lru_cache

import redis

from .config import settings

logger = logging.getLogger("chatline.redis")

DISABLED_URLS = ("", "none", "disabled")


@lru_cache
def get_redis_client() -> redis.Redis | None:
    """Connect once on first use; None when Redis is disabled or unreachable.

    The result is cached for the life of the process, including a failed
    attempt, so an unreachable server costs one connect timeout in total.
    """
    redis_url = settings.REDIS_URL or ""
    if redis_url.lower() in DISABLED_URLS:
        logger.info("Redis is not configured; login rate limiting is disabled")
        return None

    client = redis.Redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning("Redis not available (%s); login rate limiting is disabled", e)
        return None

    logger.info("Redis connection established")
    return client
