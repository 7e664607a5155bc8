"""Base fetcher interface and shared HTTP client management.

All price fetchers inherit from BaseFetcher and implement the fetch() method,
which returns the USD price of an asset as a Decimal or raises FetcherError.
A shared httpx.AsyncClient is used across all fetchers to avoid connection
overhead.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"

        async def fetch(self, asset: str) -> Decimal:
            response = await self._get(f"https://api.example.com/{asset}")
            return self._parse_price(response.json()["usd"])
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

import httpx

from ..errors import SourceUnavailableError

logger = logging.getLogger(__name__)


class FetcherError(SourceUnavailableError):
    """Base exception for fetcher errors."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when fetcher configuration is invalid (e.g., missing API key)."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class BaseFetcher(ABC):
    """Abstract base class for price fetchers.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "coingecko")
        - fetch(): Async method returning the USD price of an asset

    :cvar name: Unique identifier for this fetcher.
    :cvar requires_api_key: Whether the source refuses anonymous requests.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Fetcher identification
    name: ClassVar[str] = ""
    requires_api_key: ClassVar[bool] = False

    # Default timeout for HTTP requests (seconds)
    DEFAULT_TIMEOUT = 10.0

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all fetcher instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        client = BaseFetcher._shared_client
        if client is None or client.is_closed:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
            BaseFetcher._shared_client = client
        return client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (e.g., with a mock transport)."""
        BaseFetcher._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseFetcher._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseFetcher._shared_client = None

    @abstractmethod
    async def fetch(self, asset: str) -> Decimal:
        """Fetch the current USD price of an asset.

        :param asset: Asset symbol (e.g., "aleo").
        :returns: Current price as an exact Decimal.
        :raises FetcherError: If the source is unreachable or the body is unusable.
        """
        pass

    def _require_api_key(self) -> str:
        """Return the API key or raise if the source needs one and has none."""
        if not self.has_api_key:
            raise FetcherConfigError(f"[{self.name}] API key required but not provided")
        assert self.api_key is not None
        return self.api_key

    def _parse_price(self, raw: Any) -> Decimal:
        """Convert a JSON price value to a positive Decimal.

        :param raw: Price as found in the response body.
        :returns: Price as Decimal.
        :raises FetcherError: If the value is missing, non-numeric or not positive.
        """
        if raw is None or isinstance(raw, bool):
            raise FetcherError(f"[{self.name}] Missing price in response")
        try:
            price = Decimal(str(raw))
        except InvalidOperation as e:
            raise FetcherError(f"[{self.name}] Unparsable price {raw!r}") from e
        if not price.is_finite() or price <= 0:
            raise FetcherError(f"[{self.name}] Invalid price {raw!r}")
        return price

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise FetcherHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        """GET a URL and decode its JSON body.

        :raises FetcherError: On HTTP failure or a non-JSON body.
        """
        response = await self._get(url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise FetcherError(f"[{self.name}] Invalid JSON body: {e}") from e


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.

    .. code-block:: python

        @register_fetcher
        class CoinStatsFetcher(BaseFetcher):
            name = "coinstats"
            ...
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str, api_key: str | None = None, timeout: float | None = None
) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "coingecko", "coinstats").
    :param api_key: Optional API key.
    :param timeout: Optional request timeout in seconds.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](api_key=api_key, timeout=timeout)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
