# backend/market_sync/utils/__init__.py
"""
Cross-cutting utilities:
- logging: setup with correlation ID support
- context: correlation ID storage (requests and sync runs)
- parsing: vendor number/date parsing
- sql: LIKE escaping for search
- upsert: dialect-aware ON CONFLICT statements
"""

from market_sync.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    correlation_scope,
)
from market_sync.utils.logging import setup_logging, get_logger
from market_sync.utils.sql import escape_like_pattern, contains_pattern

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "correlation_scope",
    # SQL
    "escape_like_pattern",
    "contains_pattern",
]
