# backend/market_sync/services/market_data/funds.py
"""
Fund-company extractors (China mutual funds).

Three vendors publish their full fund lists, each in its own shape and
units. Every extractor here hands back percentages (2.35 means 2.35%)
so nothing downstream needs to know which vendor a yield came from.

Vendor notes:
    NFFund  - JSON API; 7-day yield reported as income per 10,000 units
    Bosera  - HTML page with `window.fundListJson = [...]`; mixes decimal
              yields (".0003") with percentage yields ("0.03")
    EFunds  - HTML page with `var __FUND_SUPER_MARKET_DATA__ = [...]`
"""

import logging
import re
from typing import Any

from market_sync.models import InstrumentType
from market_sync.services.constants import BOSERA_MARKET, EFUNDS_MARKET, NF_FUND_MARKET
from market_sync.services.exceptions import VendorFormatError
from market_sync.services.market_data.base import RawInstrument, SourceExtractor, dig
from market_sync.utils.parsing import clean_text, parse_number, parse_optional_number

logger = logging.getLogger(__name__)

FUND_HEADERS = {"User-Agent": "Mozilla/5.0"}


def _percent_from_decimal(value: Any) -> float | None:
    """Convert a decimal fraction (".0235") to a percentage (2.35)."""
    number = parse_optional_number(value)
    return number * 100 if number is not None else None


# =============================================================================
# NFFUND (南方基金)
# =============================================================================

NFFUND_URL = "https://www.nffund.com/nfwebApi/fund/supermarket"
NFFUND_SUCCESS_CODE = "ETS-5BP00000"

# Vendor category codes -> fund type; unmapped codes fall back to hybrid
NFFUND_CATEGORY_TYPES: dict[str, str] = {
    "173C6C94CE0608f07e8d831e6f2c99d7": "混合型",
    "173C6C94CE037c8c7b796c99203456b4": "债券型",
}
NFFUND_DEFAULT_TYPE = "混合型"


class NFFundExtractor(SourceExtractor):
    """
    Southern Asset Management (NF_FUND).

    Payload:
        {"code": "ETS-5BP00000", "message": "...",
         "data": {"g_index_allrelist": [{"fundcode": "000001", "nav": "1.2345",
                                         "fdate": "20260206", "fmqwsl": "0.6512", ...}]}}
    """

    @property
    def source_name(self) -> str:
        return NF_FUND_MARKET

    def fetch(self) -> list[RawInstrument]:
        payload = self._post_json(
            NFFUND_URL,
            headers={**FUND_HEADERS, "Content-Type": "application/json"},
        )
        if not isinstance(payload, dict):
            raise VendorFormatError(self.source_name, "response is not a JSON object")
        if payload.get("code") != NFFUND_SUCCESS_CODE:
            raise VendorFormatError(
                self.source_name, f"NFFund API error: {payload.get('message')}"
            )

        rows = self._require_rows(
            dig(payload, "data", "g_index_allrelist") or [], "data.g_index_allrelist"
        )
        logger.info(f"[NFFund] Fetched {len(rows)} funds")
        return [self._map_row(row) for row in rows]

    @staticmethod
    def _map_row(row: dict) -> RawInstrument:
        # Income per 10k units -> annualized percent
        income = parse_optional_number(row.get("fmqwsl"))
        yield_7d = income * 365 / 100 if income is not None else None

        return RawInstrument(
            symbol=clean_text(row.get("fundcode")),
            name=clean_text(row.get("fundname")),
            market=NF_FUND_MARKET,
            type=InstrumentType.FUND,
            currency="CNY",
            last_price=parse_number(row.get("nav")),
            change=parse_optional_number(row.get("upRatio")),
            fund_type=NFFUND_CATEGORY_TYPES.get(
                row.get("webFirstCategorys"), NFFUND_DEFAULT_TYPE
            ),
            manager_name=clean_text(row.get("fundManagerName")),
            yield_7d=yield_7d,
            yield_1m=parse_optional_number(row.get("recentOneMonth")),
            yield_3m=parse_optional_number(row.get("recentThreeMonth")),
            yield_6m=parse_optional_number(row.get("recentHalfYear")),
            yield_1y=parse_optional_number(row.get("recentOneYear")),
            yield_ytd=parse_optional_number(row.get("thisYear")),
            yield_since_inception=parse_optional_number(row.get("since")),
            nav_date=clean_text(row.get("fdate")),
            country="China",
            is_active=str(row.get("status")) == "1",
        )


# =============================================================================
# BOSERA (博时基金)
# =============================================================================

BOSERA_URL = "https://www.bosera.com/fund/index.html"
BOSERA_DATA_RE = re.compile(r"window\.fundListJson\s*=\s*(\[.*?\]);", re.DOTALL)


class BoseraExtractor(SourceExtractor):
    """
    Bosera Funds (BOSERA).

    Bosera publishes two families of yield fields: `*Yield` fields are
    decimal fractions, the short names (`week`, `month`, `year`, ...) are
    already percentages. It has no half-year percentage field, so the
    6-month yield falls back to the 1-year figure when `halfYearYield`
    is absent.
    """

    @property
    def source_name(self) -> str:
        return BOSERA_MARKET

    def fetch(self) -> list[RawInstrument]:
        html = self._get_text(BOSERA_URL, headers=FUND_HEADERS)
        rows = self._require_rows(
            self._extract_embedded_json(html, BOSERA_DATA_RE), "fundListJson"
        )
        logger.info(f"[Bosera] Extracted {len(rows)} funds")
        return [self._map_row(row) for row in rows]

    @staticmethod
    def _map_row(row: dict) -> RawInstrument:
        net_value = clean_text(row.get("netValue"))
        yield_1y = parse_optional_number(row.get("year"))
        yield_6m = _percent_from_decimal(row.get("halfYearYield"))
        if yield_6m is None:
            yield_6m = yield_1y

        return RawInstrument(
            symbol=clean_text(row.get("fundCode")),
            name=clean_text(row.get("fundName")),
            market=BOSERA_MARKET,
            type=InstrumentType.FUND,
            currency="CNY",
            last_price=parse_number(net_value),
            change=parse_optional_number(row.get("rate")),
            fund_type=clean_text(row.get("fundTypeShow")),
            risk_level=clean_text(row.get("fundRisk")),
            yield_1w=parse_optional_number(row.get("week")),
            yield_1m=parse_optional_number(row.get("month")),
            yield_3m=parse_optional_number(row.get("threeMonth")),
            yield_6m=yield_6m,
            yield_1y=yield_1y,
            yield_ytd=_percent_from_decimal(row.get("thisYearYield")),
            yield_since_inception=parse_optional_number(row.get("total")),
            nav_date=clean_text(row.get("netDate")),
            country="China",
            # "--" NAV means the fund is not currently priced
            is_active=net_value is not None,
        )


# =============================================================================
# EFUNDS (易方达基金)
# =============================================================================

EFUNDS_URL = "https://www.efunds.com.cn/lm/jjcp/"
EFUNDS_DATA_RE = re.compile(r"var __FUND_SUPER_MARKET_DATA__\s*=\s*(\[.*?\]);", re.DOTALL)


class EFundsExtractor(SourceExtractor):
    """E Fund Management (EFUNDS)."""

    @property
    def source_name(self) -> str:
        return EFUNDS_MARKET

    def fetch(self) -> list[RawInstrument]:
        html = self._get_text(EFUNDS_URL, headers=FUND_HEADERS)
        rows = self._require_rows(
            self._extract_embedded_json(html, EFUNDS_DATA_RE), "__FUND_SUPER_MARKET_DATA__"
        )
        logger.info(f"[EFunds] Extracted {len(rows)} funds")
        return [self._map_row(row) for row in rows]

    @staticmethod
    def _map_row(row: dict) -> RawInstrument:
        return RawInstrument(
            symbol=clean_text(row.get("fundcode")),
            name=clean_text(row.get("fundname")),
            market=EFUNDS_MARKET,
            type=InstrumentType.FUND,
            currency="CNY",
            last_price=parse_number(row.get("netvalue")),
            change=parse_optional_number(row.get("rzd")),
            fund_type=clean_text(row.get("fundType")),
            risk_level=clean_text(dig(row, "properties", "riskLevel")),
            manager_name=clean_text(row.get("managerName")),
            yield_7d=parse_optional_number(row.get("qrnh")),
            yield_1m=parse_optional_number(row.get("lastMonthIncome")),
            yield_1y=parse_optional_number(row.get("lastYearIncome")),
            yield_ytd=parse_optional_number(row.get("thisYearIncome")),
            yield_since_inception=parse_optional_number(row.get("sinceIncome")),
            nav_date=clean_text(row.get("tdate")),
            setup_date=clean_text(row.get("setupdate")),
            country="China",
            is_active=str(row.get("state")) == "0",
        )
