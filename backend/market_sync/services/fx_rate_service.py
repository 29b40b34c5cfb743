# backend/market_sync/services/fx_rate_service.py
"""
FX Rate Service for syncing and reading daily CNY central parity rates.

This service handles:
- Fetching the CCPR (central parity) sheet from ChinaMoney (CFETS)
- Storing each quote together with its reciprocal for the same day
- Looking up latest, dated and historical rates
- Falling back to configured default rates when nothing is stored

=============================================================================
FX RATE CONVENTION
=============================================================================

    rate = "1 from_currency = X to_currency"

Example:
    from_currency = "USD", to_currency = "CNY", rate = 7.1
    Meaning: 1 USD = 7.1 CNY

Conversion:
    to_amount = from_amount × rate

ChinaMoney quotes some currencies per 100 units (JPY: "100 JPY = 4.8 CNY").
Those quotes are divided by 100 before storage so every stored rate is
per single unit. The set of such currencies is configurable
(FX_HUNDRED_UNIT_CURRENCIES).

=============================================================================

Design Principles:
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Financial Precision: Uses Decimal for all rates
- Partial Success: One bad quote is counted and skipped

Usage:
    from market_sync.services import FXRateService

    service = FXRateService(transport)
    result = service.sync_latest_rates(db)

    rate = service.get_latest_rate(db, "USD", "CNY")  # Decimal("7.1") or None
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market_sync.config import settings
from market_sync.models import ExchangeRate
from market_sync.services.constants import FX_DOMESTIC_CURRENCY, FX_SOURCE, SUPPORTED_CURRENCIES
from market_sync.services.exceptions import FXProviderError, ValidationError
from market_sync.services.transport import HttpTransport
from market_sync.utils.parsing import parse_optional_number, parse_vendor_date
from market_sync.utils.upsert import build_upsert

logger = logging.getLogger(__name__)

CCPR_URL = "https://www.chinamoney.com.cn/r/cms/www/chinamoney/data/fx/ccpr.json"
CCPR_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}
CCPR_SUCCESS_CODE = "200"

RATE_QUANTUM = Decimal("0.00000001")
ONE = Decimal("1")


# =============================================================================
# RESULT DATA CLASSES
# =============================================================================

@dataclass
class FXSyncResult:
    """Result of one CCPR sync. Forward and reciprocal rows count separately."""

    rate_date: date | None = None
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class FXRateStats:
    total_records: int
    currencies: list[str]
    latest_date: date | None

    @property
    def currency_count(self) -> int:
        return len(self.currencies)


# =============================================================================
# FX RATE SERVICE
# =============================================================================

class FXRateService:
    """
    Service for syncing and reading exchange rates against CNY.

    Attributes:
        _hundred_unit: Currencies quoted per 100 units by the provider

    Example:
        service = FXRateService(transport)
        service.sync_latest_rates(db)

        history = service.get_rate_history(
            db, "USD", "CNY", date(2026, 1, 1), date(2026, 1, 31)
        )
    """

    def __init__(
            self,
            transport: HttpTransport,
            hundred_unit_currencies: list[str] | None = None,
            default_rates: dict[str, float] | None = None,
    ) -> None:
        self._transport = transport
        self._hundred_unit = {
            c.upper() for c in (
                hundred_unit_currencies
                if hundred_unit_currencies is not None
                else settings.fx_hundred_unit_currencies
            )
        }
        self._default_rates = (
            default_rates if default_rates is not None else settings.default_exchange_rates
        )

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_latest_rates(self, db: Session) -> FXSyncResult:
        """
        Fetch today's CCPR sheet and upsert every quote and its reciprocal.

        Returns:
            FXSyncResult with per-row success/failed counts

        Raises:
            TransportError: Network failure after retries
            FXProviderError: Non-success status or unusable payload
        """
        logger.info("[ExchangeRate] Starting sync from ChinaMoney")
        payload = self._fetch_ccpr()
        rate_date = self._parse_rate_date(payload)
        records = payload.get("records")
        if not isinstance(records, list):
            raise FXProviderError(FX_SOURCE, "missing 'records' list")

        result = FXSyncResult(rate_date=rate_date)
        for record in records:
            self._store_quote(db, record, rate_date, result)

        logger.info(
            f"[ExchangeRate] Sync completed for {rate_date}: "
            f"{result.success} success, {result.failed} failed"
        )
        return result

    def upsert_manual_rate(
            self,
            db: Session,
            from_currency: str,
            to_currency: str,
            rate: Decimal | float | str,
            rate_date: date | None = None,
    ) -> ExchangeRate:
        """
        Store a manually supplied rate (default: today).

        Raises:
            ValidationError: If the currencies or rate are invalid
        """
        from_currency = self._normalize_currency(from_currency, "from_currency")
        to_currency = self._normalize_currency(to_currency, "to_currency")
        try:
            value = Decimal(str(rate))
        except InvalidOperation as e:
            raise ValidationError(f"Invalid rate: {rate}", field="rate") from e
        if not value.is_finite() or value <= 0:
            raise ValidationError("Rate must be a positive number", field="rate")

        rate_date = rate_date or datetime.now(timezone.utc).date()
        self._upsert_rate(db, from_currency, to_currency, rate_date, value, source="MANUAL")
        return db.scalar(
            select(ExchangeRate).where(
                ExchangeRate.from_currency == from_currency,
                ExchangeRate.to_currency == to_currency,
                ExchangeRate.date == rate_date,
            )
        )

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_latest_rate(self, db: Session, from_currency: str, to_currency: str) -> Decimal | None:
        """Most recent stored rate for the pair, or None."""
        from_currency, to_currency = from_currency.upper(), to_currency.upper()
        if from_currency == to_currency:
            return ONE
        return db.scalar(
            select(ExchangeRate.rate)
            .where(
                ExchangeRate.from_currency == from_currency,
                ExchangeRate.to_currency == to_currency,
            )
            .order_by(ExchangeRate.date.desc())
            .limit(1)
        )

    def get_rate(
            self,
            db: Session,
            from_currency: str,
            to_currency: str,
            rate_date: date,
    ) -> Decimal | None:
        """Rate stored for exactly `rate_date`, or None."""
        from_currency, to_currency = from_currency.upper(), to_currency.upper()
        if from_currency == to_currency:
            return ONE
        return db.scalar(
            select(ExchangeRate.rate).where(
                ExchangeRate.from_currency == from_currency,
                ExchangeRate.to_currency == to_currency,
                ExchangeRate.date == rate_date,
            )
        )

    def get_rate_history(
            self,
            db: Session,
            from_currency: str,
            to_currency: str,
            start_date: date,
            end_date: date,
    ) -> list[tuple[date, Decimal]]:
        """
        Stored rates in [start_date, end_date], oldest first.

        Raises:
            ValidationError: If start_date is after end_date
        """
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")

        rows = db.execute(
            select(ExchangeRate.date, ExchangeRate.rate)
            .where(
                ExchangeRate.from_currency == from_currency.upper(),
                ExchangeRate.to_currency == to_currency.upper(),
                ExchangeRate.date >= start_date,
                ExchangeRate.date <= end_date,
            )
            .order_by(ExchangeRate.date.asc())
        ).all()
        return [(d, r) for d, r in rows]

    def get_rate_with_default(self, db: Session, from_currency: str, to_currency: str) -> Decimal:
        """
        Latest rate, falling back to DEFAULT_EXCHANGE_RATES and then 1.

        Never raises for a missing pair; callers use this where some rate
        is always better than none (valuation display).
        """
        rate = self.get_latest_rate(db, from_currency, to_currency)
        if rate is not None:
            return rate

        key = f"{from_currency.upper()}_{to_currency.upper()}"
        default = self._default_rates.get(key)
        if default is not None:
            logger.warning(f"No stored rate for {key}, using configured default {default}")
            return Decimal(str(default))

        logger.warning(f"No stored or default rate for {key}, using 1")
        return ONE

    def get_stats(self, db: Session) -> FXRateStats:
        total = db.scalar(select(func.count(ExchangeRate.id))) or 0
        currencies = list(db.scalars(
            select(ExchangeRate.from_currency).distinct().order_by(ExchangeRate.from_currency)
        ))
        latest = db.scalar(select(func.max(ExchangeRate.date)))
        return FXRateStats(total_records=total, currencies=currencies, latest_date=latest)

    @staticmethod
    def get_supported_currencies() -> list[str]:
        return list(SUPPORTED_CURRENCIES)

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    def _fetch_ccpr(self) -> dict[str, Any]:
        response = self._transport.post(CCPR_URL, headers=CCPR_HEADERS)
        if not response.is_success:
            raise FXProviderError(FX_SOURCE, f"ChinaMoney API error: {response.status_code}")
        try:
            payload = response.json()
        except ValueError as e:
            raise FXProviderError(FX_SOURCE, f"invalid JSON body: {e}") from e
        if not isinstance(payload, dict):
            raise FXProviderError(FX_SOURCE, "response is not a JSON object")

        head = payload.get("head") or {}
        if str(head.get("rep_code")) != CCPR_SUCCESS_CODE:
            raise FXProviderError(
                FX_SOURCE, f"ChinaMoney API error: {head.get('rep_message') or head.get('rep_code')}"
            )
        return payload

    @staticmethod
    def _parse_rate_date(payload: dict[str, Any]) -> date:
        # lastDate looks like "2026-02-06 9:15"
        raw = (payload.get("data") or {}).get("lastDate")
        try:
            rate_date = parse_vendor_date(raw)
        except ValueError as e:
            raise FXProviderError(FX_SOURCE, f"invalid lastDate '{raw}'") from e
        if rate_date is None:
            raise FXProviderError(FX_SOURCE, "missing data.lastDate")
        return rate_date

    def _store_quote(
            self,
            db: Session,
            record: dict[str, Any],
            rate_date: date,
            result: FXSyncResult,
    ) -> None:
        currency = str(record.get("foreignCName") or "").strip().upper()
        price = parse_optional_number(record.get("price"))

        if len(currency) != 3 or price is None or not math.isfinite(price) or price <= 0:
            # Neither the forward nor the reciprocal row can be written
            result.failed += 2
            result.errors.append(f"unusable quote {record!r}")
            logger.warning(f"[ExchangeRate] Skipping unusable quote: {record!r}")
            return

        forward = Decimal(str(price))
        if currency in self._hundred_unit:
            forward = forward / 100
        reciprocal = (ONE / forward).quantize(RATE_QUANTUM)

        for from_currency, to_currency, rate in (
                (currency, FX_DOMESTIC_CURRENCY, forward),
                (FX_DOMESTIC_CURRENCY, currency, reciprocal),
        ):
            try:
                self._upsert_rate(db, from_currency, to_currency, rate_date, rate)
                result.success += 1
            except SQLAlchemyError as e:
                result.failed += 1
                result.errors.append(f"{from_currency}/{to_currency}: {e}")
                logger.error(f"[ExchangeRate] Failed to save rate {from_currency}/{to_currency}: {e}")

    @staticmethod
    def _upsert_rate(
            db: Session,
            from_currency: str,
            to_currency: str,
            rate_date: date,
            rate: Decimal,
            source: str = FX_SOURCE,
    ) -> None:
        stmt = build_upsert(
            db,
            ExchangeRate,
            {
                "from_currency": from_currency,
                "to_currency": to_currency,
                "date": rate_date,
                "rate": rate,
                "source": source,
            },
            index_elements=["from_currency", "to_currency", "date"],
            update_columns=["rate", "source"],
            extra_set={"updated_at": datetime.now(timezone.utc)},
        )
        try:
            db.execute(stmt)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def _normalize_currency(code: str, field_name: str) -> str:
        code = (code or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValidationError(f"Invalid currency code: '{code}'", field=field_name)
        return code
