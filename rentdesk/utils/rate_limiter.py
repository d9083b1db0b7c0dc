"""
Rate Limiter Configuration

In-memory storage by default. Set REDIS_URL to share limits across
instances; an unreachable Redis falls back to in-memory storage.
"""

import logging
import os

import redis
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """Get real client IP behind reverse proxy"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def get_storage_uri() -> str:
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return "memory://"

    try:
        redis.from_url(redis_url).ping()
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}, using in-memory rate limiter storage")
        return "memory://"

    logger.info("Redis connected for rate limiting")
    return redis_url


limiter = Limiter(key_func=get_real_client_ip, storage_uri=get_storage_uri())
