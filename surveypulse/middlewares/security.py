"""Security middleware - headers and per-IP rate limiting."""

import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from surveypulse.core.config import settings
from surveypulse.core.exceptions import RateLimitExceededError
from surveypulse.db.redis import get_redis_optional

logger = logging.getLogger(__name__)

UNLIMITED_PATHS = {"/health", "/", "/docs", "/redoc", "/openapi.json"}


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Headers:
    - X-Content-Type-Options: Prevents MIME type sniffing
    - X-Frame-Options: Prevents clickjacking
    - Referrer-Policy: Controls referrer information
    - Content-Security-Policy: Production only
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if "server" in response.headers:
            del response.headers["server"]

        if settings.is_production:
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "img-src 'self' data: https:; "
                "connect-src 'self' wss: ws:;"
            )

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window rate limiting per IP and path, stored in Redis.

    Requests pass through unchecked when Redis is not connected.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        redis = get_redis_optional()
        if redis is None:
            return await call_next(request)

        key = f"rate_limit:{get_client_ip(request)}:{request.url.path}"
        current = 0
        try:
            pipe = redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, settings.rate_limit_window_seconds)
            current, _ = await pipe.execute()
        except Exception as e:
            # Fail open
            logger.warning(f"Rate limit check failed: {e}")

        if current > settings.rate_limit_requests:
            error = RateLimitExceededError(retry_after=settings.rate_limit_window_seconds)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_dict(),
                headers={
                    "Retry-After": str(settings.rate_limit_window_seconds),
                    "X-RateLimit-Limit": str(settings.rate_limit_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        remaining = settings.rate_limit_requests - int(current or 0)
        response.headers["X-RateLimit-Limit"] = str(settings.rate_limit_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(0, remaining))
        return response
