"""
Rate limiting for public endpoints (slowapi).

Usage:
    from app.core.rate_limit import limiter

    @router.get("/summary")
    @limiter.limit("60/minute")
    async def summary(request: Request): ...
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


def get_rate_limit_key(request: Request) -> str:
    """
    Get the rate limit key for a request.

    Uses IP address, with fallback to X-Forwarded-For for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["60/minute"],
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)

# Limits by endpoint family
PUBLIC_LIMIT = "60/minute"
STATS_LIMIT = "30/minute"  # every call fans out to TBA
HEALTH_LIMIT = "120/minute"
WEBHOOK_LIMIT = "120/minute"
