"""
Rate Limiting for Academia Records
==================================
Implements rate limiting using slowapi with in-process storage.

The login route has its own stricter limit (LOGIN_RATE_LIMIT) to slow down
credential guessing; everything else shares RATE_LIMIT_PER_MINUTE.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from academia.core.config import settings
from academia.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Get rate limit key.

    Authenticated requests are keyed by user id (set on request.state by the
    auth dependency), anonymous ones by client IP.
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Return a JSON 429 with a Retry-After hint"""
    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": "Too many requests. Please slow down.",
                "details": {"limit": str(exc.detail)},
            },
        },
        headers={"Retry-After": "60"},
    )


def auth_rate_limit():
    """Rate limit for credential endpoints"""
    return limiter.limit(settings.LOGIN_RATE_LIMIT, key_func=get_remote_address)
