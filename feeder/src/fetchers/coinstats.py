"""CoinStats fetcher.

Endpoint: https://openapiv1.coinstats.app/coins/{coinId}
ALEO Support: Yes (coinId: "aleo")
API Key: Required
"""

import logging
from decimal import Decimal

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinStatsFetcher(BaseFetcher):
    """Fetcher for the CoinStats coin detail endpoint.

    The coin detail body carries many market fields; only "price" (USD) is used.
    API key is REQUIRED.
    """

    name = "coinstats"
    requires_api_key = True
    BASE_URL = "https://openapiv1.coinstats.app"

    async def fetch(self, asset: str) -> Decimal:
        """Fetch the USD price from CoinStats.

        :param asset: Asset symbol, used as the CoinStats coin id.
        :returns: Current USD price.
        :raises FetcherError: On missing key, HTTP failure or unexpected body.
        """
        api_key = self._require_api_key()

        data = await self._get_json(
            f"{self.BASE_URL}/coins/{asset.lower()}",
            headers={"X-API-KEY": api_key, "accept": "application/json"},
        )

        if not isinstance(data, dict) or "price" not in data:
            raise FetcherError(f"[coinstats] Unexpected response: {data}")

        price = self._parse_price(data["price"])
        logger.debug(f"[coinstats] {asset}/usd = {price}")
        return price
