"""
Rate limiting for the xParagliding booking API
Redis sliding window, applied per client IP and endpoint
"""

import time
import logging
from typing import Optional
from fastapi import Request, HTTPException
import redis.asyncio as aioredis

from . import config

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple rate limiter using Redis sliding window."""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or config.REDIS_URL
        self.redis: Optional[aioredis.Redis] = None

    async def init_redis(self):
        """Initialize Redis connection."""
        if not self.redis:
            self.redis = aioredis.from_url(self.redis_url, decode_responses=True)

    async def is_rate_limited(self, key: str, limit: int = 10, window: int = 60) -> bool:
        """
        Check if key is rate limited.
        Args:
            key: Unique identifier (IP + path)
            limit: Max requests allowed
            window: Time window in seconds
        """
        await self.init_redis()

        current_time = time.time()
        window_start = current_time - window
        redis_key = f"rate_limit:{key}"

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(redis_key, 0, window_start)
        pipe.zcard(redis_key)
        pipe.zadd(redis_key, {f"{current_time:.6f}": current_time})
        pipe.expire(redis_key, window + 10)

        results = await pipe.execute()
        current_count = results[1]

        return current_count >= limit

    async def ping(self) -> bool:
        await self.init_redis()
        return await self.redis.ping()

    async def close(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None


# Global rate limiter instance
rate_limiter = RateLimiter()


def client_ip(request: Request) -> str:
    ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not ip:
        ip = request.headers.get("X-Real-IP", "")
    if not ip:
        ip = getattr(request.client, "host", None) or "unknown"
    return ip


class RateLimit:
    """
    FastAPI dependency enforcing a request budget per client IP and path.

    Redis failures let the request through.
    """

    def __init__(self, limit: int, window: int):
        self.limit = limit
        self.window = window

    async def __call__(self, request: Request):
        if not config.RATE_LIMIT_ENABLED:
            return

        ip = client_ip(request)
        endpoint = request.url.path
        rate_key = f"{ip}:{endpoint}"

        try:
            is_limited = await rate_limiter.is_rate_limited(rate_key, self.limit, self.window)
        except Exception as e:
            logger.error(f"Rate limiting error: {e}")
            return

        if is_limited:
            logger.warning(f"Rate limit exceeded for {ip} on {endpoint}")
            raise HTTPException(
                status_code=429,
                detail={
                    "error": "Rate limit exceeded",
                    "limit": self.limit,
                    "window": self.window,
                    "message": f"Too many requests. Limit: {self.limit} requests per {self.window} seconds."
                }
            )
