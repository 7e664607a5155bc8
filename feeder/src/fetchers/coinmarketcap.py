"""CoinMarketCap fetcher.

Endpoint: https://pro-api.coinmarketcap.com/v1/cryptocurrency/quotes/latest
Rate Limit: 333 calls/day (free tier)
ALEO Support: Yes
API Key: Required
"""

import logging
from decimal import Decimal

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinMarketCapFetcher(BaseFetcher):
    """Fetcher for the CoinMarketCap symbol quote endpoint.

    Free tier: 333 calls/day.
    API key is REQUIRED.
    """

    name = "coinmarketcap"
    requires_api_key = True
    BASE_URL = "https://pro-api.coinmarketcap.com"

    async def fetch(self, asset: str) -> Decimal:
        """Fetch the USD price from CoinMarketCap.

        :param asset: Asset symbol (e.g., "aleo").
        :returns: Current USD price.
        :raises FetcherError: On missing key, HTTP failure or unexpected body.
        """
        api_key = self._require_api_key()
        symbol = asset.upper()

        data = await self._get_json(
            f"{self.BASE_URL}/v1/cryptocurrency/quotes/latest",
            params={"symbol": symbol},
            headers={"X-CMC_PRO_API_KEY": api_key},
        )

        try:
            symbol_data = data["data"][symbol]
            # v2 style responses return a list of matches, take the first one
            if isinstance(symbol_data, list):
                symbol_data = symbol_data[0]
            raw = symbol_data["quote"]["USD"]["price"]
        except (KeyError, TypeError, IndexError) as e:
            raise FetcherError(f"[coinmarketcap] Unexpected response: {data}") from e

        price = self._parse_price(raw)
        logger.debug(f"[coinmarketcap] {symbol}/USD = {price}")
        return price
