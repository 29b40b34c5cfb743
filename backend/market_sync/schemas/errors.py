# backend/market_sync/schemas/errors.py
"""
Pydantic schemas for error responses.

Every error leaving the API (domain errors, request validation, rate
limiting) uses one of these shapes. Built by the exception handlers in
main.py.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Standard error body."""

    error: str = Field(
        ...,
        description="Error type (e.g., 'InstrumentNotFoundError', 'VendorFormatError')"
    )
    message: str = Field(..., description="Human-readable error message")
    details: dict | None = Field(
        default=None,
        description="Additional context, e.g. the offending field"
    )


class ValidationErrorDetail(BaseModel):
    """Body for request validation failures (422)."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict] = Field(..., description="One entry per invalid parameter")
