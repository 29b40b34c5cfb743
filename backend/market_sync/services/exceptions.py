# backend/market_sync/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The global handlers in main.py map them to HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── TransportError
    ├── VendorFormatError
    ├── ValidationError
    ├── PersistenceError
    ├── NotFoundError
    │   └── InstrumentNotFoundError
    └── FXRateError
        └── FXProviderError

How the sync pipeline treats them:
    TransportError      network-level, raised only after retries are exhausted;
                        aborts the source run (task FAILED)
    VendorFormatError   unexpected vendor payload; aborts the source run
    ValidationError     single bad record; counted as failed, batch continues
    PersistenceError    single record write failed; counted, batch continues
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# TRANSPORT / VENDOR ERRORS
# =============================================================================


class TransportError(ServiceError):
    """
    Raised when an HTTP request keeps failing with transient network errors.

    Attributes:
        url: The requested URL
        reason: Description of the last underlying failure
        attempts: Number of attempts made before giving up
    """

    def __init__(self, url: str, reason: str, attempts: int = 1) -> None:
        self.url = url
        self.reason = reason
        self.attempts = attempts
        super().__init__(f"Request to {url} failed after {attempts} attempt(s): {reason}")


class VendorFormatError(ServiceError):
    """
    Raised when a vendor response is missing or has an unexpected shape.

    Also used for non-success HTTP statuses, which the transport
    hands back to the extractor for interpretation.

    Attributes:
        source: Name of the data source
        reason: What was wrong with the response
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


# =============================================================================
# VALIDATION / PERSISTENCE ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when a record or an argument fails validation.

    Attributes:
        field: The field that failed validation (optional)
        errors: All collected validation messages
    """

    def __init__(
            self,
            message: str,
            field: str | None = None,
            errors: list[str] | None = None,
    ) -> None:
        self.field = field
        self.errors = errors or [message]
        super().__init__(message)


class PersistenceError(ServiceError):
    """
    Raised when a single instrument cannot be written to the store.

    Attributes:
        symbol: Instrument symbol
        market: Instrument market
        reason: Underlying database error
    """

    def __init__(self, symbol: str, market: str, reason: str) -> None:
        self.symbol = symbol
        self.market = market
        self.reason = reason
        super().__init__(f"Failed to persist {symbol}/{market}: {reason}")


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Instrument")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class InstrumentNotFoundError(NotFoundError):
    """Raised when no instrument exists for a (symbol, market) pair."""

    def __init__(self, symbol: str, market: str) -> None:
        self.symbol = symbol
        self.market = market
        super().__init__(
            f"Instrument '{symbol}' on market '{market}' not found",
            resource_type="Instrument",
            resource_id=f"{market}:{symbol}",
        )


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """
    Base exception for FX rate errors.

    Attributes:
        from_currency: Source currency code
        to_currency: Target currency code
    """

    def __init__(
            self,
            message: str,
            from_currency: str | None = None,
            to_currency: str | None = None,
    ) -> None:
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(message)


class FXProviderError(FXRateError):
    """
    Raised when the FX data provider returns an error or unusable data.

    Attributes:
        provider: Name of the FX data provider
        reason: Specific reason for failure
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"FX provider '{provider}' error: {reason}")


__all__ = [
    # Base
    "ServiceError",
    # Transport / vendor
    "TransportError",
    "VendorFormatError",
    # Record-level
    "ValidationError",
    "PersistenceError",
    # Not Found
    "NotFoundError",
    "InstrumentNotFoundError",
    # FX Rate
    "FXRateError",
    "FXProviderError",
]
