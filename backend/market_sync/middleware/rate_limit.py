# backend/market_sync/middleware/rate_limit.py
"""
Rate limiting for the HTTP surface (slowapi).

Sync endpoints start work against third-party vendors (exchange screeners,
fund company sites, ChinaMoney), so they get a much tighter limit than
the read endpoints. Limits live in services/constants.py.

Key by: client IP (forwarded headers only from trusted proxies)
Storage: in-memory, per process

Usage:
    @router.post("/sync")
    @limiter.limit(RATE_LIMIT_SYNC)
    def start_sync(request: Request, ...):
        ...
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from market_sync.config import settings
from market_sync.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_HEALTH,
    RATE_LIMIT_SYNC,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


def _is_trusted_proxy(request: Request) -> bool:
    if settings.trust_proxy_headers:
        return True
    return get_remote_address(request) in settings.trusted_proxy_ips


def _get_client_ip(request: Request) -> str:
    """
    Client IP for rate-limit keys.

    X-Forwarded-For / X-Real-IP are only honoured when the immediate peer
    is a trusted proxy, so clients cannot pick their own bucket.
    """
    if _is_trusted_proxy(request):
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=not settings.is_test,
)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """429 in the standard ErrorDetail shape, with Retry-After."""
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"
    logger.warning(f"Rate limit exceeded for {_get_client_ip(request)}: {limit_info}")

    return JSONResponse(
        status_code=429,
        content={
            "error": "RateLimitError",
            "message": f"Too many requests. {limit_info}",
            "details": {"retry_after": RETRY_AFTER_SECONDS},
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_SYNC",
    "RATE_LIMIT_HEALTH",
]
