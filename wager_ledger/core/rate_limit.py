"""
Rate limiting shared by the application and its routers.
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from wager_ledger.core.config import settings


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
    default_limits=["60/minute"],  # General limit for most endpoints
    storage_uri=settings.REDIS_URL if settings.RATE_LIMIT_STORAGE == "redis" else "memory://",
    enabled=settings.RATE_LIMIT_ENABLED
)

# Wager endpoints move funds; keep them tighter than reads
WAGER_LIMIT = "20/minute"
READ_LIMIT = "60/minute"
