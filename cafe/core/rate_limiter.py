import logging
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from ..config import settings
from ..services.redis import RedisClient, redis_client

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window rate limiting using Redis"""

    def __init__(self, requests: int = 100, window: int = 60, client: RedisClient = None):
        self.requests = requests
        self.window = window
        self.client = client or redis_client

    async def check_rate_limit(self, request: Request, identifier: Optional[str] = None) -> int:
        """Count this request; raise 429 once the window's budget is spent"""
        identifier = identifier or (request.client.host if request.client else "anonymous")
        key = f"rate_limit:{identifier}:{request.url.path}"

        try:
            current = self.client.incr(key)
            if current == 1:
                self.client.expire(key, self.window)
        except redis.RedisError as e:
            # Placing orders must keep working when Redis is down
            logger.warning("Rate limiter unavailable, allowing request: %s", e)
            return 0

        if current > self.requests:
            ttl = self.client.ttl(key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Try again in {ttl} seconds"
            )
        return current

    async def __call__(self, request: Request) -> int:
        return await self.check_rate_limit(request, request.cookies.get(settings.SESSION_COOKIE_NAME))


order_limiter = RateLimiter(requests=settings.ORDER_RATE_LIMIT, window=settings.ORDER_RATE_WINDOW)
