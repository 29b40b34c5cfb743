# backend/market_sync/dependencies.py
"""
Dependency injection module for FastAPI routes and scheduled jobs.

Services are process-wide singletons, created lazily on first use so
importing the app has no network or database side effects. The HTTP
transport is shared by every extractor and the FX service, so there is
one connection pool and one proxy configuration per process.

Usage in routers:
    from market_sync.dependencies import get_instrument_service

    @router.get("/stats")
    def stats(service: InstrumentService = Depends(get_instrument_service)):
        ...
"""

import logging
from functools import lru_cache

from market_sync.config import settings
from market_sync.services.fx_rate_service import FXRateService
from market_sync.services.market_data.instrument_service import InstrumentService
from market_sync.services.market_data.sync_service import InstrumentSyncService
from market_sync.services.price_resolver import PriceResolver
from market_sync.services.transport import HttpTransport

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_transport (no deps)
# 2. get_sync_service, get_fx_rate_service (depend on transport)
# 3. get_instrument_service, get_price_resolver (no deps)


@lru_cache(maxsize=1)
def get_transport() -> HttpTransport:
    """Shared HTTP transport, routed through PROXY_URL when one is configured."""
    logger.debug("Initializing singleton HttpTransport")
    return HttpTransport(proxy_url=settings.proxy_url)


@lru_cache(maxsize=1)
def get_sync_service() -> InstrumentSyncService:
    logger.debug("Initializing singleton InstrumentSyncService")
    return InstrumentSyncService(transport=get_transport())


@lru_cache(maxsize=1)
def get_fx_rate_service() -> FXRateService:
    logger.debug("Initializing singleton FXRateService")
    return FXRateService(transport=get_transport())


@lru_cache(maxsize=1)
def get_instrument_service() -> InstrumentService:
    return InstrumentService()


@lru_cache(maxsize=1)
def get_price_resolver() -> PriceResolver:
    return PriceResolver()


# =============================================================================
# CACHE MANAGEMENT
# =============================================================================

def clear_service_caches() -> None:
    """
    Clear all service caches.

    The cached transport is closed first so its connection pool is not
    leaked. Useful for testing or after changing settings.
    """
    if get_transport.cache_info().currsize:
        get_transport().close()

    get_transport.cache_clear()
    get_sync_service.cache_clear()
    get_fx_rate_service.cache_clear()
    get_instrument_service.cache_clear()
    get_price_resolver.cache_clear()
    logger.info("Cleared all service singleton caches")
