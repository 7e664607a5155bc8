"""Explorer: REST access to the Aleo explorer API.

Endpoints used (all relative to ``{endpoint}/{network}``):
    - GET /latest/height                          -> JSON integer
    - GET /transaction/confirmed/{tx_id}          -> JSON {"status": ...}
    - GET /program/{program}/mapping/{name}/{key} -> JSON string or null
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import SourceUnavailableError

logger = logging.getLogger(__name__)


class ExplorerError(SourceUnavailableError):
    """Raised when the explorer is unreachable or returns an unusable body."""

    pass


class ExplorerHTTPError(ExplorerError):
    """Raised on a non-2xx explorer response.

    :ivar status_code: HTTP status code.
    :ivar body: Response body text.
    """

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}")


class ExplorerClient:
    """Async client for the explorer REST API.

    :ivar endpoint: Explorer base URL (e.g., "https://api.explorer.provable.com/v1").
    :ivar network: Network path segment (e.g., "testnet", "mainnet").
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        endpoint: str,
        network: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the explorer client.

        :param endpoint: Explorer base URL.
        :param network: Network name used as path segment.
        :param client: Optional pre-built httpx client (e.g., with a mock transport).
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.endpoint = endpoint.rstrip("/")
        self.network = network.strip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return f"{self.endpoint}/{self.network}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _get_json(self, path: str) -> Any:
        """GET a path below the network base URL and decode its JSON body.

        :param path: Path starting with "/".
        :returns: Decoded JSON value.
        :raises ExplorerHTTPError: On non-2xx response.
        :raises ExplorerError: On network errors or invalid JSON.
        """
        url = self.base_url + path
        client = self._get_client()
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as e:
            raise ExplorerError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise ExplorerError(f"Request failed: {e}") from e

        logger.debug("GET %s -> %s", url, response.status_code)
        if not response.is_success:
            raise ExplorerHTTPError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise ExplorerError(f"Invalid JSON from {url}: {e}") from e

    async def latest_height(self) -> int:
        """Fetch the latest block height.

        :returns: Current chain height.
        :raises ExplorerError: On failure or a non-integer body.
        """
        data = await self._get_json("/latest/height")
        if not isinstance(data, int) or isinstance(data, bool) or data < 0:
            raise ExplorerError(f"Invalid height in response: {data!r}")
        return data

    async def transaction_status(self, tx_id: str) -> str:
        """Fetch the confirmation status string of a transaction.

        :param tx_id: Transaction identifier ("at1...").
        :returns: Raw status, e.g. "accepted" or "rejected".
        :raises ExplorerError: On failure or a body without status.
        """
        data = await self._get_json(f"/transaction/confirmed/{tx_id}")
        if not isinstance(data, dict) or "status" not in data:
            raise ExplorerError(f"No status in confirmation response: {data!r}")
        return str(data["status"])

    async def mapping_value(self, program_id: str, mapping_name: str, key: str) -> str | None:
        """Read one value from a program mapping.

        :param program_id: Program identifier (e.g., "oracle_submit.aleo").
        :param mapping_name: Mapping name.
        :param key: Mapping key literal.
        :returns: Raw value string, or None if the key is absent.
        :raises ExplorerError: On failure.
        """
        data = await self._get_json(f"/program/{program_id}/mapping/{mapping_name}/{key}")
        if data is None:
            return None
        return str(data)
