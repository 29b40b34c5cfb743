# backend/market_sync/services/market_data/normalizer.py
"""
Normalization and validation of extracted instrument rows.

normalize() turns a RawInstrument into an InstrumentRecord ready for the
repository: identity fields upper-cased, blank strings dropped, the
currency defaulted by venue and vendor date strings parsed. validate()
then decides whether the record may be stored.

Date parse failures do not raise during normalization; they are kept on
the record and reported by validate(), so one bad date rejects one row
and never the batch.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from market_sync.models import InstrumentType
from market_sync.services.constants import (
    BINANCE_MARKET,
    FUND_MARKETS,
    SSE_BOND_MARKET,
    SSE_FUND_MARKET,
    US_ETF_MARKET,
    US_EXCHANGES,
)
from market_sync.services.exceptions import ValidationError
from market_sync.services.market_data.base import RawInstrument
from market_sync.utils.parsing import clean_text, parse_vendor_date

logger = logging.getLogger(__name__)

YIELD_FIELDS: tuple[str, ...] = (
    "yield_7d",
    "yield_1w",
    "yield_1m",
    "yield_3m",
    "yield_6m",
    "yield_1y",
    "yield_ytd",
    "yield_since_inception",
)

# Currency implied by the venue when the vendor does not send one
_VENUE_CURRENCIES: dict[str, str] = {
    **{exchange: "USD" for exchange in US_EXCHANGES},
    US_ETF_MARKET: "USD",
    BINANCE_MARKET: "USD",
    "SSE": "CNY",
    SSE_FUND_MARKET: "CNY",
    SSE_BOND_MARKET: "CNY",
    **{market: "CNY" for market in FUND_MARKETS},
}
DEFAULT_CURRENCY = "USD"


@dataclass
class InstrumentRecord:
    """
    A normalized instrument ready to be upserted.

    Numbers stay as floats here; the repository converts them to Decimal
    at the database boundary.
    """

    symbol: str
    market: str
    name: str
    type: InstrumentType
    currency: str

    last_price: float | None = None
    change: float | None = None
    change_percent: float | None = None
    volume: float | None = None
    market_cap: float | None = None

    sector: str | None = None
    industry: str | None = None
    country: str | None = None

    fund_type: str | None = None
    risk_level: str | None = None
    manager_name: str | None = None
    yield_7d: float | None = None
    yield_1w: float | None = None
    yield_1m: float | None = None
    yield_3m: float | None = None
    yield_6m: float | None = None
    yield_1y: float | None = None
    yield_ytd: float | None = None
    yield_since_inception: float | None = None
    nav_date: date | None = None
    setup_date: date | None = None

    is_active: bool = True

    # Problems found while normalizing (e.g. unparseable dates)
    parse_errors: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.market}:{self.symbol}"

    def column_values(self) -> dict[str, Any]:
        """Column name -> value for every persisted field."""
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if name != "parse_errors"
        }


def _upper(value: Any) -> str:
    text = clean_text(value)
    return text.upper() if text else ""


def _parse_date_field(raw_value: str | None, field_name: str, errors: list[str]) -> date | None:
    try:
        return parse_vendor_date(raw_value)
    except ValueError as e:
        errors.append(f"{field_name}: {e}")
        return None


def normalize(raw: RawInstrument) -> InstrumentRecord:
    """
    Unify a vendor row into the canonical record shape.

    Args:
        raw: Row produced by an extractor

    Returns:
        InstrumentRecord (not yet validated)
    """
    errors: list[str] = []
    market = _upper(raw.market)
    currency = _upper(raw.currency) or _VENUE_CURRENCIES.get(market, DEFAULT_CURRENCY)

    return InstrumentRecord(
        symbol=_upper(raw.symbol),
        market=market,
        name=clean_text(raw.name) or "",
        type=raw.type,
        currency=currency,
        last_price=raw.last_price,
        change=raw.change,
        change_percent=raw.change_percent,
        volume=raw.volume,
        market_cap=raw.market_cap,
        sector=clean_text(raw.sector),
        industry=clean_text(raw.industry),
        country=clean_text(raw.country),
        fund_type=clean_text(raw.fund_type),
        risk_level=clean_text(raw.risk_level),
        manager_name=clean_text(raw.manager_name),
        yield_7d=raw.yield_7d,
        yield_1w=raw.yield_1w,
        yield_1m=raw.yield_1m,
        yield_3m=raw.yield_3m,
        yield_6m=raw.yield_6m,
        yield_1y=raw.yield_1y,
        yield_ytd=raw.yield_ytd,
        yield_since_inception=raw.yield_since_inception,
        nav_date=_parse_date_field(raw.nav_date, "nav_date", errors),
        setup_date=_parse_date_field(raw.setup_date, "setup_date", errors),
        is_active=True if raw.is_active is None else raw.is_active,
        parse_errors=errors,
    )


def validate(record: InstrumentRecord) -> list[str]:
    """
    Check a normalized record.

    Returns:
        List of human-readable problems; empty when the record is valid
    """
    errors = list(record.parse_errors)

    if not record.symbol:
        errors.append("symbol is required")
    if not record.name:
        errors.append("name is required")
    if not record.market:
        errors.append("market is required")

    price = record.last_price
    if price is not None:
        if math.isnan(price) or math.isinf(price):
            errors.append("last_price is not a number")
        elif price < 0:
            errors.append(f"last_price must not be negative (got {price})")

    for name in YIELD_FIELDS:
        value = getattr(record, name)
        if value is not None and not math.isfinite(value):
            errors.append(f"{name} is not a finite number")

    return errors


def validate_or_raise(record: InstrumentRecord) -> InstrumentRecord:
    """
    Validate a record, raising on the first invalid one.

    Raises:
        ValidationError: With all problems in `.errors`
    """
    errors = validate(record)
    if errors:
        logger.warning(f"Rejected {record.key or '<unknown>'}: {'; '.join(errors)}")
        raise ValidationError(
            f"Invalid instrument {record.key}: {'; '.join(errors)}",
            errors=errors,
        )
    return record
