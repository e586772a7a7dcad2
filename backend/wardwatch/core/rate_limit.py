"""
Rate limiting for the public endpoints.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)

# Limits per endpoint group
RATE_LIMITS = {
    "health": "60/minute",
    # Each manual trigger runs a full alert cycle
    "trigger_check": "6/minute",
}


def client_key(request: Request) -> str:
    """Client address as seen behind the nginx proxy."""
    forwarded = request.headers.get("X-Real-IP") or request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    return first_hop or get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    default_limits=["1000/hour"],
    storage_uri="memory://",
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded",
        client=client_key(request),
        path=request.url.path,
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={"detail": f"Too many requests ({exc.detail}). Please try again later."},
        headers={"Retry-After": "60"},
    )
