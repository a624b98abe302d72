"""Rate limiting middleware."""

import logging
import time
from typing import Optional

import redis
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from yaya_webhook.settings import Settings
from yaya_webhook.utils.client_ip import resolve_client_ip
from yaya_webhook.utils.metrics import rate_limit_rejections

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ["/", "/api/v1/health", "/metrics", "/docs", "/openapi.json"]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Token bucket rate limiting per client IP.

    The bucket holds ``rate_limit_max_requests`` tokens and refills completely
    over ``rate_limit_window_ms``. If Redis is unreachable the request is let
    through and the failure is logged.
    """

    def __init__(self, app, settings: Settings, redis_client: Optional[redis.Redis] = None):
        super().__init__(app)
        self.settings = settings
        self.redis_client = redis_client or redis.from_url(settings.redis_url, decode_responses=True)
        self.capacity = settings.rate_limit_max_requests
        self.window_seconds = settings.rate_limit_window_ms / 1000

    async def dispatch(self, request: Request, call_next):
        """Apply rate limiting."""
        # Skip rate limiting for health checks and metrics
        if request.url.path in EXEMPT_PATHS or request.url.path.startswith("/metrics"):
            return await call_next(request)

        client_ip = resolve_client_ip(request, self.settings.trusted_proxy_list) or "unknown"
        key = f"rate_limit:{client_ip}"
        now = time.time()

        try:
            tokens = self._take_token(key, now)
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        if tokens is None:
            rate_limit_rejections.inc()
            logger.warning("Rate limit exceeded", extra={"client_ip": client_ip})
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": "Too many requests",
                    "message": "Rate limit exceeded. Please try again later.",
                },
                headers={"Retry-After": str(int(self.window_seconds))},
            )

        # Process request
        response = await call_next(request)

        # Add rate limit headers
        response.headers["X-RateLimit-Limit"] = str(self.capacity)
        response.headers["X-RateLimit-Remaining"] = str(int(tokens))
        response.headers["X-RateLimit-Reset"] = str(int(now + self.window_seconds))

        return response

    def _take_token(self, key: str, now: float) -> Optional[float]:
        """Consume one token; return what is left, or None when the bucket is empty."""
        pipe = self.redis_client.pipeline()
        pipe.get(key)
        pipe.get(f"{key}:last_refill")
        results = pipe.execute()

        tokens = float(results[0]) if results[0] else float(self.capacity)
        last_refill = float(results[1]) if results[1] else now

        # Refill tokens based on time passed
        time_passed = now - last_refill
        refill_amount = (time_passed / self.window_seconds) * self.capacity
        tokens = min(float(self.capacity), tokens + refill_amount)

        if tokens < 1:
            return None

        # Consume token
        tokens -= 1

        # Keys expire once a full window passes without traffic
        ttl = max(1, int(self.window_seconds))
        pipe = self.redis_client.pipeline()
        pipe.set(key, tokens, ex=ttl)
        pipe.set(f"{key}:last_refill", now, ex=ttl)
        pipe.execute()

        return tokens
