# backend/market_sync/services/market_data/base.py
"""
Abstract interface for instrument data sources.

Every vendor (exchange screener, exchange feed, fund company, crypto
exchange) is wrapped in a SourceExtractor. The rest of the pipeline only
sees the two-member contract:

    fetch()       -> list[RawInstrument]
    source_name   -> label used for the sync task and the report

Design Principles:
- Vendor quirks (unit conversions, sentinels, payload shape) stay in the
  extractor module that knows the vendor
- Extractors never touch the database; persistence happens in the ledger
- Network access goes through the injected HttpTransport only
- A new source = one new subclass + one registry entry in sync_service
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from market_sync.models import InstrumentType
from market_sync.services.exceptions import VendorFormatError
from market_sync.services.transport import HttpTransport

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class RawInstrument:
    """
    One vendor row mapped onto canonical field names.

    Values are still "raw": numbers may be NaN when the vendor sent a
    malformed string, dates are the vendor's strings, and fields the
    vendor does not report are None. Unit conversions (decimal -> percent,
    annualization) have already been applied by the extractor.

    Attributes:
        symbol: Vendor code (e.g., "AAPL", "600519", "BTC")
        name: Display name
        market: Venue/vendor code (e.g., "NASDAQ", "NF_FUND")
        type: Instrument type
        currency: Trading currency, if the vendor implies one
        nav_date / setup_date: Vendor date strings
        is_active: Vendor validity signal (None = not reported)
    """

    symbol: str | None
    name: str | None
    market: str
    type: InstrumentType
    currency: str | None = None

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
    nav_date: str | None = None
    setup_date: str | None = None

    is_active: bool | None = None


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class SourceExtractor(ABC):
    """
    Abstract base class for instrument data sources.

    Subclasses implement `source_name` and `fetch()`. The helpers below
    turn HTTP responses into Python objects and raise VendorFormatError
    for non-success statuses or unexpected payloads; TransportError from
    the transport propagates unchanged.
    """

    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport
        # Keys the vendor could not serve during the last fetch();
        # the runner counts each one as a failed record
        self.failed_symbols: list[str] = []

    @property
    @abstractmethod
    def source_name(self) -> str:
        """
        Label for this source, used as the SyncTask market label.

        Returns:
            Source label (e.g., "NASDAQ", "SSE_BOND", "BINANCE_TOP")
        """
        pass

    @abstractmethod
    def fetch(self) -> list[RawInstrument]:
        """
        Download and parse the vendor's current listing.

        Returns:
            Raw records in vendor response order

        Raises:
            TransportError: Network failure after retries
            VendorFormatError: Non-success status or unexpected payload
        """
        pass

    # =========================================================================
    # RESPONSE HELPERS
    # =========================================================================

    def _check_status(self, response: httpx.Response, label: str | None = None) -> None:
        if not response.is_success:
            raise VendorFormatError(
                self.source_name,
                f"{label or self.source_name} API error: {response.status_code}",
            )

    def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Perform a request and decode its JSON body."""
        response = self._transport.request(method, url, **kwargs)
        self._check_status(response)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise VendorFormatError(self.source_name, f"invalid JSON body: {e}") from e

    def _get_json(self, url: str, **kwargs: Any) -> Any:
        return self._request_json("GET", url, **kwargs)

    def _post_json(self, url: str, **kwargs: Any) -> Any:
        return self._request_json("POST", url, **kwargs)

    def _get_text(self, url: str, **kwargs: Any) -> str:
        response = self._transport.get(url, **kwargs)
        self._check_status(response)
        return response.text

    def _extract_embedded_json(self, html: str, pattern: re.Pattern[str]) -> Any:
        """
        Pull a JSON literal assigned to a JS variable out of an HTML page.

        Args:
            html: Page source
            pattern: Regex whose first group captures the JSON literal

        Raises:
            VendorFormatError: If the variable is missing or not valid JSON
        """
        match = pattern.search(html)
        if not match:
            raise VendorFormatError(self.source_name, "embedded data block not found in page")
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError as e:
            raise VendorFormatError(self.source_name, f"embedded data is not valid JSON: {e}") from e

    def _require_list(self, value: Any, path: str) -> list:
        """Ensure a payload node is a list."""
        if not isinstance(value, list):
            raise VendorFormatError(
                self.source_name,
                f"expected a list at '{path}', got {type(value).__name__}",
            )
        return value

    def _require_rows(self, value: Any, path: str) -> list[dict]:
        """Ensure a payload node is a list of JSON objects."""
        rows = self._require_list(value, path)
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                raise VendorFormatError(
                    self.source_name,
                    f"expected an object at '{path}[{index}]', got {type(row).__name__}",
                )
        return rows

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.source_name!r})"


def dig(payload: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing."""
    current = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
