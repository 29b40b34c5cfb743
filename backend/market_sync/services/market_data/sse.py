# backend/market_sync/services/market_data/sse.py
"""
Shanghai Stock Exchange list feeds.

The exchange's quote host serves compact array rows:

    GET https://yunhq.sse.com.cn:32042/v1/sh1/list/exchange/equity
    {"date": 20260206, "time": 150003, "total": 2300,
     "list": [["600000", "浦发银行", 10.42], ["600004", "白云机场", 9.87], ...]}

Only the first three columns (code, name, last price) are used. The same
shape is served for the equity, fund and "all" lists; bonds are picked
out of "all" by code prefix.
"""

import logging
from collections.abc import Iterable

from market_sync.models import InstrumentType
from market_sync.services.constants import SSE_BOND_MARKET, SSE_FUND_MARKET, SSE_STOCK_MARKET
from market_sync.services.exceptions import VendorFormatError
from market_sync.services.market_data.base import RawInstrument, SourceExtractor
from market_sync.services.transport import HttpTransport
from market_sync.utils.parsing import clean_text, parse_number

logger = logging.getLogger(__name__)

SSE_LIST_URL = "https://yunhq.sse.com.cn:32042/v1/sh1/list/exchange/{kind}"

SSE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Referer": "https://www.sse.com.cn/",
}

# Market code stored on SSE equities (holdings reference "SSE")
SSE_EQUITY_MARKET = "SSE"


class SSEListExtractor(SourceExtractor):
    """
    Base for the SSE list feeds.

    Subclasses set the list kind, the instrument type and the market code
    stored on each row, and may narrow the rows with `_include()`.
    """

    kind: str = "equity"
    instrument_type: InstrumentType = InstrumentType.STOCK
    market: str = SSE_EQUITY_MARKET
    label: str = SSE_STOCK_MARKET

    @property
    def source_name(self) -> str:
        return self.label

    def fetch(self) -> list[RawInstrument]:
        payload = self._get_json(
            SSE_LIST_URL.format(kind=self.kind),
            params={"select": "code,name,last", "order": "code,asc"},
            headers=SSE_HEADERS,
        )
        if not isinstance(payload, dict):
            raise VendorFormatError(self.source_name, "response is not a JSON object")
        rows = self._require_list(payload.get("list") or [], "list")

        records = []
        for row in rows:
            if not isinstance(row, list) or len(row) < 2:
                raise VendorFormatError(self.source_name, f"unexpected row shape: {row!r}")
            code = clean_text(row[0])
            if not self._include(code):
                continue
            records.append(self._map_row(code, row))

        logger.info(f"Fetched {len(records)} rows from SSE {self.kind} list ({self.label})")
        return records

    def _include(self, code: str | None) -> bool:
        return True

    def _map_row(self, code: str | None, row: list) -> RawInstrument:
        return RawInstrument(
            symbol=code,
            name=clean_text(row[1]),
            market=self.market,
            type=self.instrument_type,
            currency="CNY",
            last_price=parse_number(row[2]) if len(row) > 2 else None,
            country="China",
        )


class SSEStockExtractor(SSEListExtractor):
    """A-share equities listed in Shanghai."""


class SSEFundExtractor(SSEListExtractor):
    """Exchange-traded funds listed in Shanghai."""

    kind = "fund"
    instrument_type = InstrumentType.FUND
    market = SSE_FUND_MARKET
    label = SSE_FUND_MARKET


class SSEBondExtractor(SSEListExtractor):
    """
    Bonds listed in Shanghai.

    The bond list is carved out of the "all" feed by code prefix
    (treasuries, convertibles, corporate bonds); the prefixes come from
    settings so new bond ranges need no code change.
    """

    kind = "all"
    instrument_type = InstrumentType.BOND
    market = SSE_BOND_MARKET
    label = SSE_BOND_MARKET

    def __init__(self, transport: HttpTransport, prefixes: Iterable[str]) -> None:
        super().__init__(transport)
        self._prefixes = tuple(prefixes)

    def _include(self, code: str | None) -> bool:
        return bool(code) and code.startswith(self._prefixes)
