# backend/market_sync/services/transport.py
"""
Resilient HTTP transport shared by every extractor and the FX synchronizer.

Responsibilities:
- Per-attempt deadline (httpx timeout), so a hung call is aborted, not leaked
- Exponential-backoff retry for transient network failures only
- Optional upstream proxy, routed through one lazily-created, reused client

Retry Behavior:
    The delay before retry i (0-indexed) is

        min(initial_delay * backoff_multiplier ** i, max_delay)

    With the defaults (3 retries, 1s initial, x2, 10s cap) a permanently
    failing call makes 4 attempts with 1s, 2s and 4s sleeps in between.

Retryable:
    - Connection reset/refused, DNS failures, connect/read/pool timeouts
    - An exception group containing at least one of the above

Not retryable:
    - HTTP error statuses. The response is returned and the caller decides.
    - Any other error (invalid URL, unsupported protocol, decoding errors)

Usage:
    transport = HttpTransport(proxy_url=settings.proxy_url)
    response = transport.get("https://api.example.com/rows", headers={...})
"""

import logging
import socket
import threading
import time
from typing import Any, Callable

import httpx
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
)

from market_sync.config import settings
from market_sync.services.exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

# httpx exceptions that indicate a network-level, possibly temporary failure
TRANSIENT_HTTPX_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
)

# Lower-level errors that can surface from custom transports
TRANSIENT_OS_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,  # reset, refused, aborted
    TimeoutError,
    socket.gaierror,  # DNS
)


def is_transient_error(exc: BaseException) -> bool:
    """
    Classify an exception as a transient network failure.

    Exception groups are transient when at least one member is.
    The __cause__ chain is followed so wrapped socket errors are recognized.
    """
    if isinstance(exc, BaseExceptionGroup):
        return any(is_transient_error(inner) for inner in exc.exceptions)

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, TRANSIENT_HTTPX_ERRORS + TRANSIENT_OS_ERRORS):
            return True
        seen.add(id(current))
        current = current.__cause__
    return False


def backoff_delay(
        attempt_index: int,
        initial_delay: float,
        multiplier: float,
        max_delay: float,
) -> float:
    """Delay in seconds before retry number attempt_index (0-indexed)."""
    return min(initial_delay * multiplier ** attempt_index, max_delay)


class HttpTransport:
    """
    HTTP client wrapper with timeout, retry and proxy support.

    The underlying httpx.Client (and with it the proxy connection pool)
    is created on first use and reused by every call and every thread.
    It is only rebuilt when reconfigure() changes the proxy.

    Attributes:
        max_retries: Retries after the initial attempt
        initial_delay: First backoff delay in seconds
        max_delay: Upper bound for any single delay
        backoff_multiplier: Exponential growth factor
        timeout: Per-attempt timeout in seconds
    """

    def __init__(
            self,
            proxy_url: str | None = None,
            max_retries: int | None = None,
            initial_delay: float | None = None,
            max_delay: float | None = None,
            backoff_multiplier: float | None = None,
            timeout: float | None = None,
            transport: httpx.BaseTransport | None = None,
            sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the transport.

        Args:
            proxy_url: Upstream proxy; None for direct connections
            max_retries: Defaults to settings.http_max_retries
            initial_delay: Defaults to settings.http_initial_delay
            max_delay: Defaults to settings.http_max_delay
            backoff_multiplier: Defaults to settings.http_backoff_multiplier
            timeout: Defaults to settings.http_timeout
            transport: Custom httpx transport (tests use httpx.MockTransport)
            sleep: Sleep function used between attempts
        """
        self.max_retries = settings.http_max_retries if max_retries is None else max_retries
        self.initial_delay = settings.http_initial_delay if initial_delay is None else initial_delay
        self.max_delay = settings.http_max_delay if max_delay is None else max_delay
        self.backoff_multiplier = (
            settings.http_backoff_multiplier if backoff_multiplier is None else backoff_multiplier
        )
        self.timeout = settings.http_timeout if timeout is None else timeout

        self._proxy_url = proxy_url
        self._custom_transport = transport
        self._sleep = sleep

        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

        logger.info(
            f"HttpTransport initialized (proxy={'on' if proxy_url else 'off'}, "
            f"max_retries={self.max_retries}, timeout={self.timeout}s)"
        )

    # =========================================================================
    # CLIENT LIFECYCLE
    # =========================================================================

    @property
    def is_proxy_configured(self) -> bool:
        return bool(self._proxy_url)

    @property
    def client(self) -> httpx.Client:
        """Return the shared client, creating it on first use."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._build_client()
        return self._client

    def _build_client(self) -> httpx.Client:
        kwargs: dict[str, Any] = {
            "timeout": httpx.Timeout(self.timeout),
            "headers": {"User-Agent": DEFAULT_USER_AGENT},
            "follow_redirects": True,
        }
        if self._custom_transport is not None:
            kwargs["transport"] = self._custom_transport
        elif self._proxy_url:
            kwargs["proxy"] = self._proxy_url

        if self._proxy_url:
            logger.info("Creating proxied HTTP client")
        return httpx.Client(**kwargs)

    def reconfigure(self, proxy_url: str | None) -> None:
        """Switch proxy; the cached client is dropped only if the URL changed."""
        with self._client_lock:
            if proxy_url == self._proxy_url:
                return
            self._proxy_url = proxy_url
            if self._client is not None:
                self._client.close()
                self._client = None
        logger.info(f"HttpTransport proxy reconfigured (proxy={'on' if proxy_url else 'off'})")

    def close(self) -> None:
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    # =========================================================================
    # REQUESTS
    # =========================================================================

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Perform an HTTP request with retry on transient failures.

        Args:
            method: HTTP method
            url: Absolute URL
            **kwargs: Passed through to httpx.Client.request (headers, json, params...)

        Returns:
            The httpx.Response, whatever its status code

        Raises:
            TransportError: Retries exhausted, or a non-retryable transport failure
        """
        attempts = 0

        def _attempt() -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return self.client.request(method, url, **kwargs)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.backoff_multiplier,
                min=0,
                max=self.max_delay,
            ),
            retry=retry_if_exception(is_transient_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            return retrying(_attempt)
        except httpx.HTTPError as e:
            reason = f"{type(e).__name__}: {e}"
            if is_transient_error(e):
                logger.error(f"{method} {url} failed after {attempts} attempts: {reason}")
            else:
                logger.error(f"{method} {url} failed (not retried): {reason}")
            raise TransportError(url, reason, attempts) from e
        except TRANSIENT_OS_ERRORS as e:
            reason = f"{type(e).__name__}: {e}"
            logger.error(f"{method} {url} failed after {attempts} attempts: {reason}")
            raise TransportError(url, reason, attempts) from e
        except BaseExceptionGroup as e:
            if not is_transient_error(e):
                raise
            logger.error(f"{method} {url} failed after {attempts} attempts: {e}")
            raise TransportError(url, str(e), attempts) from e

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)
