# backend/market_sync/utils/context.py
"""
Context storage for correlation IDs.

Uses contextvars so the ID follows the current request or sync run.
Worker threads do not inherit context automatically; the orchestrator
submits each source run through contextvars.copy_context().run.

Usage:
    from market_sync.utils.context import correlation_scope, get_correlation_id

    with correlation_scope("sync"):
        logger.info("...")  # tagged with "sync-<uuid>"
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current correlation ID, or None if not set."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Clear the correlation ID for the current context."""
    _correlation_id_var.set(None)


def new_correlation_id(prefix: str | None = None) -> str:
    """Generate a fresh ID, optionally prefixed (e.g. "sync-1b9d...")."""
    value = uuid.uuid4().hex[:12]
    return f"{prefix}-{value}" if prefix else value


@contextmanager
def correlation_scope(prefix: str) -> Iterator[str]:
    """
    Ensure a correlation ID is set for the duration of the block.

    An existing ID (e.g. from the HTTP request that triggered a sync)
    is kept; otherwise a new prefixed ID is generated and removed again
    on exit.
    """
    existing = _correlation_id_var.get()
    if existing:
        yield existing
        return

    token = _correlation_id_var.set(new_correlation_id(prefix))
    try:
        yield _correlation_id_var.get()
    finally:
        _correlation_id_var.reset(token)
