# backend/market_sync/services/market_data/nasdaq.py
"""
Nasdaq screener extractors for US-listed stocks and ETFs.

The public screener serves one JSON document per exchange:

    GET https://api.nasdaq.com/api/screener/stocks?download=true&exchange=NASDAQ
    {"data": {"rows": [{"symbol": "AAPL", "lastsale": "$189.84",
                        "netchange": "-1.23", "pctchange": "-0.644%",
                        "volume": "51234567", "marketCap": "2,950,000,000,000",
                        "country": "United States", "sector": "Technology",
                        "industry": "Computer Manufacturing", ...}]}}

Every numeric field is a decorated string. A price that cannot be parsed
is kept as NaN so validation rejects the row instead of storing 0.
"""

import logging

from market_sync.models import InstrumentType
from market_sync.services.constants import US_EXCHANGES, US_ETF_MARKET
from market_sync.services.market_data.base import RawInstrument, SourceExtractor, dig
from market_sync.services.transport import HttpTransport
from market_sync.utils.parsing import clean_text, parse_number, parse_optional_number

logger = logging.getLogger(__name__)

SCREENER_STOCKS_URL = "https://api.nasdaq.com/api/screener/stocks"
SCREENER_ETF_URL = "https://api.nasdaq.com/api/screener/etf"

SCREENER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}


class USExchangeExtractor(SourceExtractor):
    """
    Stocks listed on one US exchange (NASDAQ, NYSE or AMEX).

    Example:
        extractor = USExchangeExtractor(transport, "NYSE")
        rows = extractor.fetch()
    """

    def __init__(self, transport: HttpTransport, exchange: str) -> None:
        super().__init__(transport)
        exchange = exchange.upper()
        if exchange not in US_EXCHANGES:
            raise ValueError(f"Unsupported US exchange: {exchange}")
        self._exchange = exchange

    @property
    def source_name(self) -> str:
        return self._exchange

    def fetch(self) -> list[RawInstrument]:
        payload = self._get_json(
            SCREENER_STOCKS_URL,
            params={"download": "true", "exchange": self._exchange},
            headers=SCREENER_HEADERS,
        )
        rows = self._require_rows(dig(payload, "data", "rows") or [], "data.rows")
        logger.info(f"Fetched {len(rows)} stocks from {self._exchange}")
        return [self._map_row(row) for row in rows]

    def _map_row(self, row: dict) -> RawInstrument:
        return RawInstrument(
            symbol=clean_text(row.get("symbol")),
            name=clean_text(row.get("name")),
            market=self._exchange,
            type=InstrumentType.STOCK,
            currency="USD",
            last_price=parse_number(row.get("lastsale")),
            change=parse_optional_number(row.get("netchange")),
            change_percent=parse_optional_number(row.get("pctchange")),
            volume=parse_optional_number(row.get("volume")),
            market_cap=parse_optional_number(row.get("marketCap")),
            sector=clean_text(row.get("sector")),
            industry=clean_text(row.get("industry")),
            country=clean_text(row.get("country")),
        )


class USETFExtractor(SourceExtractor):
    """
    US-listed ETFs from the Nasdaq ETF screener.

    The ETF screener nests rows one level deeper than the stock screener
    (data.data.rows) and names the price field "lastSalePrice".
    """

    @property
    def source_name(self) -> str:
        return US_ETF_MARKET

    def fetch(self) -> list[RawInstrument]:
        payload = self._get_json(
            SCREENER_ETF_URL,
            params={"download": "true"},
            headers=SCREENER_HEADERS,
        )
        rows = dig(payload, "data", "data", "rows")
        if rows is None:
            rows = dig(payload, "data", "rows") or []
        rows = self._require_rows(rows, "data.data.rows")
        logger.info(f"Fetched {len(rows)} ETFs from Nasdaq screener")
        return [self._map_row(row) for row in rows]

    @staticmethod
    def _map_row(row: dict) -> RawInstrument:
        return RawInstrument(
            symbol=clean_text(row.get("symbol")),
            name=clean_text(row.get("companyName") or row.get("name")),
            market=US_ETF_MARKET,
            type=InstrumentType.ETF,
            currency="USD",
            last_price=parse_number(row.get("lastSalePrice", row.get("lastsale"))),
            change=parse_optional_number(row.get("netChange", row.get("netchange"))),
            change_percent=parse_optional_number(
                row.get("percentageChange", row.get("pctchange"))
            ),
            country="United States",
        )
