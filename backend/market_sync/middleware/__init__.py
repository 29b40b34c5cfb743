# backend/market_sync/middleware/__init__.py
"""
ASGI middleware: correlation IDs for request tracing and rate limiting.

Usage:
    from market_sync.middleware import CorrelationIdMiddleware, limiter

    app.add_middleware(CorrelationIdMiddleware)
    app.state.limiter = limiter
"""

from market_sync.middleware.correlation import CorrelationIdMiddleware
from market_sync.middleware.rate_limit import (
    limiter,
    rate_limit_exceeded_handler,
    SlowAPIMiddleware,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_SYNC,
    RATE_LIMIT_HEALTH,
)

__all__ = [
    "CorrelationIdMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_SYNC",
    "RATE_LIMIT_HEALTH",
]
