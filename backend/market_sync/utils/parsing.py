# backend/market_sync/utils/parsing.py
"""
Parsing helpers for vendor payloads.

Vendors send numbers as strings decorated with currency symbols, percent
signs and thousands separators, and mark missing values with sentinels
such as "--" or "N/A". These helpers turn them into plain floats/dates.

Conventions:
- Blank or sentinel input -> None (the vendor did not report a value)
- Malformed input -> NaN from parse_number, None from parse_optional_number
- Dates accept YYYY-MM-DD, YYYYMMDD and YYYY/MM/DD
"""

import math
import re
from datetime import date, datetime
from typing import Any

MISSING_SENTINELS = frozenset({"", "--", "-", "N/A", "NA", "NAN", "NULL", "NONE"})

_DECORATION_RE = re.compile(r"[\s$¥￥,%+]")
_DATE_FORMATS = ("%Y-%m-%d", "%Y%m%d", "%Y/%m/%d")


def is_missing(value: Any) -> bool:
    """True when the vendor left the value empty or used a sentinel."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().upper() in MISSING_SENTINELS
    return False


def parse_number(value: Any) -> float | None:
    """
    Parse a vendor number, keeping malformed input visible.

    Returns:
        float for valid input, None for blank/sentinel input,
        NaN when the value is present but cannot be parsed

    Example:
        >>> parse_number("$1,234.50")
        1234.5
        >>> parse_number("-1.25%")
        -1.25
    """
    if is_missing(value):
        return None
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    negative = text.startswith("-")
    cleaned = _DECORATION_RE.sub("", text.lstrip("-"))
    try:
        number = float(cleaned)
    except ValueError:
        return math.nan
    return -number if negative else number


def parse_optional_number(value: Any) -> float | None:
    """Like parse_number, but malformed values are treated as not reported."""
    number = parse_number(value)
    if number is None or math.isnan(number):
        return None
    return number


def parse_vendor_date(value: Any) -> date | None:
    """
    Parse a vendor date string.

    Returns:
        date, or None for blank/sentinel input

    Raises:
        ValueError: If the value is present but not a valid calendar date
    """
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    # Drop any time part ("2026-02-06 9:15", "2026-02-06T09:15:00")
    text = re.split(r"[ T]", str(value).strip(), maxsplit=1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid calendar date '{value}'")


def clean_text(value: Any) -> str | None:
    """Strip a string; blank/sentinel values become None."""
    if is_missing(value):
        return None
    return str(value).strip()
