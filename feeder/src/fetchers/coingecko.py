"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies=usd
Rate Limit: 30 calls/min (free), higher with API key
ALEO Support: Yes (id: "aleo")
"""

import logging
from decimal import Decimal

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for the CoinGecko spot price endpoint.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    Pro keys need no prefix: API_KEY_COINGECKO=xxxxx
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]  # Strip "demo:" prefix
        super().__init__(api_key=api_key, timeout=timeout)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key:
            return self.BASE_URL_FREE
        # Demo keys use free URL, pro keys use pro URL
        return self.BASE_URL_FREE if self._is_demo else self.BASE_URL_PRO

    @property
    def api_header(self) -> tuple[str, str] | None:
        """Return appropriate header name and value for API key."""
        if not self.api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return (header_name, self.api_key)

    # Map symbols to CoinGecko IDs, unknown symbols are passed through
    COIN_IDS = {
        "aleo": "aleo",
        "btc": "bitcoin",
        "eth": "ethereum",
        "usdc": "usd-coin",
        "usdt": "tether",
    }

    async def fetch(self, asset: str) -> Decimal:
        """Fetch the USD price from CoinGecko.

        :param asset: Asset symbol (e.g., "aleo").
        :returns: Current USD price.
        :raises FetcherError: On HTTP failure or unexpected body.
        """
        coin_id = self.COIN_IDS.get(asset.lower(), asset.lower())

        headers = {}
        if self.api_header:
            header_name, header_value = self.api_header
            headers[header_name] = header_value

        data = await self._get_json(
            f"{self.base_url}/simple/price",
            params={"ids": coin_id, "vs_currencies": "usd"},
            headers=headers if headers else None,
        )

        try:
            raw = data[coin_id]["usd"]
        except (KeyError, TypeError) as e:
            raise FetcherError(f"[coingecko] Unexpected response: {data}") from e

        price = self._parse_price(raw)
        logger.debug(f"[coingecko] {asset}/usd = {price}")
        return price
