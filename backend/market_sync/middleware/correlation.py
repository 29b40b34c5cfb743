# backend/market_sync/middleware/correlation.py
"""
Correlation ID middleware for request tracing.

Each request gets an ID taken from X-Correlation-ID (or X-Request-ID),
or a fresh one when the client sent neither. The ID is stored in the
request context so every log line carries it, and echoed back in the
response header.

A sync started from a request in the background keeps the request's ID,
so the HTTP call and the run it triggered share one trace.

Usage:
    app.add_middleware(CorrelationIdMiddleware)

    curl -H "X-Correlation-ID: trace-123" http://localhost:8000/instruments/stats
"""

import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from market_sync.utils.context import (
    clear_correlation_id,
    new_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Client-supplied IDs longer than this are replaced
MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Sets the correlation ID for the request and echoes it back."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        correlation_id = self._get_correlation_id(request)
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()

    @staticmethod
    def _get_correlation_id(request: Request) -> str:
        for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
            value = (request.headers.get(header) or "").strip()
            if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
                return value
        return new_correlation_id("req")
