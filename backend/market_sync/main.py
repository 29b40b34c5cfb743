# backend/market_sync/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application and its lifespan (tables, scheduler,
  startup sync)
- Registers global exception handlers
- Registers all routers
- Defines health endpoints

Run:
    uvicorn market_sync.main:app --app-dir backend
"""

import logging
import threading
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session

from market_sync.config import settings
from market_sync.database import check_database, get_db, init_db
from market_sync.dependencies import clear_service_caches, get_transport
from market_sync.middleware import (
    CorrelationIdMiddleware,
    RATE_LIMIT_HEALTH,
    SlowAPIMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from market_sync.routers import assets_router, exchange_rates_router, instruments_router
from market_sync.scheduler import create_scheduler, run_startup_sync
from market_sync.schemas.errors import ErrorDetail, ValidationErrorDetail
from market_sync.services.exceptions import (
    FXProviderError,
    NotFoundError,
    ServiceError,
    TransportError,
    ValidationError,
    VendorFormatError,
)
from market_sync.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# LIFESPAN
# =============================================================================

def should_run_startup_sync() -> bool:
    """FORCE_SYNC_ON_STARTUP implies a startup sync even when it is not enabled."""
    if settings.is_test:
        return False
    return settings.startup_sync_enabled or settings.force_sync_on_startup


def _startup_sync_in_background() -> None:
    try:
        action = run_startup_sync()
        logger.info(f"Startup sync finished (action={action})")
    except Exception as e:
        logger.exception(f"Startup sync failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    scheduler = None
    if settings.scheduler_enabled and not settings.is_test:
        scheduler = create_scheduler()
        scheduler.start()
        logger.info(f"Scheduler started (timezone={settings.scheduler_timezone})")

    if should_run_startup_sync():
        # Long-running; must not block the server from accepting requests
        threading.Thread(
            target=_startup_sync_in_background,
            name="startup-sync",
            daemon=True,
        ).start()

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
    clear_service_caches()
    logger.info("Shutdown complete")


# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Multi-source instrument, fund, crypto and FX rate synchronization API",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Services raise domain exceptions only; these handlers turn them into
# ErrorDetail responses. Handlers are matched on the exception's MRO, so
# the most specific registered class wins.
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle invalid arguments (400)."""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="ValidationError",
            message=str(exc),
            details={"field": exc.field} if exc.field else None,
        ).model_dump(),
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle missing instruments, rates and tasks (404)."""
    logger.warning(f"Not found: {exc}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={
                "resource_type": exc.resource_type,
                "resource_id": exc.resource_id,
            } if exc.resource_type else None,
        ).model_dump(),
    )


async def _upstream_error_response(exc: ServiceError, details: dict | None) -> JSONResponse:
    logger.error(f"Upstream error: {exc}")
    return JSONResponse(
        status_code=502,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details=details,
        ).model_dump(),
    )


@app.exception_handler(TransportError)
async def transport_error_handler(request: Request, exc: TransportError) -> JSONResponse:
    """Handle upstream network failures after retries (502)."""
    return await _upstream_error_response(exc, {"url": exc.url, "attempts": exc.attempts})


@app.exception_handler(VendorFormatError)
async def vendor_format_error_handler(request: Request, exc: VendorFormatError) -> JSONResponse:
    """Handle unusable vendor responses (502)."""
    return await _upstream_error_response(exc, {"source": exc.source})


@app.exception_handler(FXProviderError)
async def fx_provider_error_handler(request: Request, exc: FXProviderError) -> JSONResponse:
    """Handle FX provider failures (502)."""
    return await _upstream_error_response(exc, {"provider": exc.provider})


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ServiceError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Convert FastAPI's {"detail": ...} into ErrorDetail."""
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            details=None,
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle query/path parameter validation failures (422)."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(details=errors).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(instruments_router)  # /instruments/*
app.include_router(exchange_rates_router)  # /exchange-rates/*
app.include_router(assets_router)  # /assets/*


# =============================================================================
# HEALTH ENDPOINTS
# =============================================================================

@app.get("/health", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Health of the service and its dependencies.

    - 200: healthy
    - 503: database unavailable (critical)

    Vendor reachability is not checked here; a failing vendor shows up as
    a FAILED row in /instruments/sync/tasks instead.
    """
    database = check_database(db)
    checks = {
        "database": {**database, "critical": True},
        "http_transport": {
            "status": "healthy",
            "critical": False,
            "proxy_configured": get_transport().is_proxy_configured,
        },
    }

    if database["status"] != "healthy":
        return JSONResponse(status_code=503, content={"status": "unhealthy", "checks": checks})
    return {"status": "healthy", "checks": checks}


@app.get("/health/ready", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def readiness_check(request: Request, db: Session = Depends(get_db)):
    """Readiness check: 503 while the database is unreachable."""
    if check_database(db)["status"] != "healthy":
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "error": "Database unavailable"},
        )
    return {"status": "ready"}
