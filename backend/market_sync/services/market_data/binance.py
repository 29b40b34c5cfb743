# backend/market_sync/services/market_data/binance.py
"""
Binance spot tickers for USDT-quoted crypto assets.

Endpoint:
    GET https://api.binance.com/api/v3/ticker/24hr            (all pairs)
    GET https://api.binance.com/api/v3/ticker/24hr?symbol=X   (one pair)

Ticker fields used: symbol ("BTCUSDT"), lastPrice, priceChange,
priceChangePercent, quoteVolume. Rows are stored under the base asset
("BTC") in market BINANCE, priced in USD.

Modes:
    all      - every USDT pair whose 24h quote volume clears the minimum
    top      - the N USDT pairs with the highest 24h quote volume
    specific - named base assets, fetched one request per symbol
"""

import logging
from collections.abc import Iterable
from typing import Literal

from market_sync.config import settings
from market_sync.models import InstrumentType
from market_sync.services.constants import BINANCE_MARKET, CRYPTO_NAMES, CRYPTO_QUOTE_ASSET
from market_sync.services.exceptions import TransportError, ValidationError, VendorFormatError
from market_sync.services.market_data.base import RawInstrument, SourceExtractor
from market_sync.services.transport import HttpTransport
from market_sync.utils.parsing import parse_number, parse_optional_number

logger = logging.getLogger(__name__)

BINANCE_TICKER_URL = "https://api.binance.com/api/v3/ticker/24hr"
BINANCE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

CryptoMode = Literal["all", "top", "specific"]

# Sync task label per mode
MODE_LABELS: dict[str, str] = {
    "all": BINANCE_MARKET,
    "top": f"{BINANCE_MARKET}_TOP",
    "specific": f"{BINANCE_MARKET}_SPECIFIC",
}


def crypto_name(base_asset: str) -> str:
    """Display name for a base asset, falling back to the ticker."""
    return CRYPTO_NAMES.get(base_asset, base_asset)


def _is_usdt_pair(pair: str) -> bool:
    return pair.endswith(CRYPTO_QUOTE_ASSET) and pair != CRYPTO_QUOTE_ASSET * 2


class BinanceExtractor(SourceExtractor):
    """
    USDT-quoted crypto assets from Binance.

    Args:
        transport: Shared HTTP transport
        mode: "all", "top" or "specific"
        limit: Number of pairs for "top" mode
        symbols: Base assets (or full pairs) for "specific" mode
        min_quote_volume: 24h USDT volume floor for "all" mode

    Example:
        extractor = BinanceExtractor(transport, mode="top", limit=50)
        rows = extractor.fetch()
    """

    def __init__(
        self,
        transport: HttpTransport,
        mode: CryptoMode = "all",
        limit: int | None = None,
        symbols: Iterable[str] | None = None,
        min_quote_volume: float | None = None,
    ) -> None:
        super().__init__(transport)
        if mode not in MODE_LABELS:
            raise ValidationError(f"Unsupported crypto sync mode: {mode}", field="mode")

        self._mode = mode
        self._limit = limit if limit is not None else settings.crypto_top_limit
        self._symbols = [s.strip().upper() for s in (symbols or []) if s and s.strip()]
        self._min_quote_volume = (
            min_quote_volume if min_quote_volume is not None else settings.crypto_min_quote_volume
        )

        if mode == "top" and self._limit <= 0:
            raise ValidationError("limit must be positive", field="limit")
        if mode == "specific" and not self._symbols:
            raise ValidationError("symbols are required for specific mode", field="symbols")

    @property
    def source_name(self) -> str:
        return MODE_LABELS[self._mode]

    def fetch(self) -> list[RawInstrument]:
        self.failed_symbols = []

        if self._mode == "specific":
            return self._fetch_specific()

        tickers = self._require_list(
            self._get_json(BINANCE_TICKER_URL, headers=BINANCE_HEADERS), "tickers"
        )
        logger.info(f"[Binance] Fetched {len(tickers)} trading pairs")

        pairs = [t for t in tickers if isinstance(t, dict) and _is_usdt_pair(str(t.get("symbol", "")))]

        if self._mode == "top":
            pairs.sort(key=lambda t: parse_optional_number(t.get("quoteVolume")) or 0.0, reverse=True)
            pairs = pairs[: self._limit]
            logger.info(f"[Binance] Selected top {len(pairs)} pairs by quote volume")
        else:
            pairs = [
                t for t in pairs
                if (parse_optional_number(t.get("quoteVolume")) or 0.0) > self._min_quote_volume
            ]
            logger.info(
                f"[Binance] Filtered to {len(pairs)} USDT pairs with volume > {self._min_quote_volume:,.0f}"
            )

        return [self._map_ticker(t) for t in pairs]

    def _fetch_specific(self) -> list[RawInstrument]:
        records = []
        for symbol in self._symbols:
            pair = symbol if symbol.endswith(CRYPTO_QUOTE_ASSET) else f"{symbol}{CRYPTO_QUOTE_ASSET}"
            try:
                ticker = self._get_json(
                    BINANCE_TICKER_URL, params={"symbol": pair}, headers=BINANCE_HEADERS
                )
                if not isinstance(ticker, dict):
                    raise VendorFormatError(self.source_name, f"unexpected ticker for {pair}")
            except (TransportError, VendorFormatError) as e:
                logger.warning(f"[Binance] Failed to fetch {pair}: {e}")
                self.failed_symbols.append(symbol)
                continue
            records.append(self._map_ticker(ticker))
        return records

    @staticmethod
    def _map_ticker(ticker: dict) -> RawInstrument:
        pair = str(ticker.get("symbol", ""))
        base_asset = pair.removesuffix(CRYPTO_QUOTE_ASSET)
        quote_volume = parse_optional_number(ticker.get("quoteVolume"))

        return RawInstrument(
            symbol=base_asset,
            name=crypto_name(base_asset),
            market=BINANCE_MARKET,
            type=InstrumentType.CRYPTO,
            currency="USD",
            last_price=parse_number(ticker.get("lastPrice")),
            change=parse_optional_number(ticker.get("priceChange")),
            change_percent=parse_optional_number(ticker.get("priceChangePercent")),
            # Quote (USDT) volume doubles as the ranking key for search
            volume=quote_volume,
            market_cap=quote_volume,
            sector="Cryptocurrency",
            country="Global",
            is_active=True,
        )
