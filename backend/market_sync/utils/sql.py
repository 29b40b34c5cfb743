# backend/market_sync/utils/sql.py
"""
SQL helpers for building safe search filters.

Instrument search passes user text into LIKE patterns; % and _ in
the query must match literally, so they are escaped with a backslash
and the filter is built with escape="\\".

Usage:
    from market_sync.utils.sql import contains_pattern, LIKE_ESCAPE

    query.where(MarketInstrument.name.like(contains_pattern(q), escape=LIKE_ESCAPE))
"""

LIKE_ESCAPE = "\\"


def escape_like_pattern(value: str) -> str:
    """
    Escape LIKE wildcards so they match literally.

    Example:
        >>> escape_like_pattern("50%_A")
        '50\\\\%\\\\_A'
    """
    # Backslash first, it is the escape character itself
    return (
        value
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


def contains_pattern(value: str) -> str:
    """Build a LIKE pattern matching values that contain `value`."""
    return f"%{escape_like_pattern(value)}%"
