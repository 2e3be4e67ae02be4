import logging
from abc import abstractmethod
from decimal import Decimal

import httpx

from domain.exceptions.currency import ProviderError
from domain.models.currency import GOLD_CODE, TROY_OUNCE_TO_GRAMS, AssetGroup
from infrastructure.providers.base import USER_AGENT, RateProvider, positive_decimal

logger = logging.getLogger(__name__)


class GoldPriceProvider(RateProvider):
    """Gold spot feed quoted in USD per troy ounce; ``fetch`` reports XAU in USD per gram."""

    group = AssetGroup.GOLD

    @abstractmethod
    async def fetch_price_per_ounce(self) -> Decimal:
        ...

    async def fetch(self) -> dict[str, Decimal]:
        per_ounce = await self.fetch_price_per_ounce()
        logger.info(f'Gold price from {self.name}: ${per_ounce}/oz')
        return {GOLD_CODE: per_ounce / TROY_OUNCE_TO_GRAMS}


class GoldAPIProvider(GoldPriceProvider):
    URL = 'https://www.goldapi.io/api/XAU/USD'

    def __init__(
        self, api_token: str = '', client: httpx.AsyncClient | None = None, timeout: int = 10
    ):
        super().__init__(client, timeout)
        self.api_token = api_token

    @property
    def name(self) -> str:
        return 'goldapi'

    async def fetch_price_per_ounce(self) -> Decimal:
        if not self.api_token:
            raise ProviderError('No API token')

        data = await self._request(
            self.URL,
            headers={'x-access-token': self.api_token, 'Content-Type': 'application/json'},
        )
        price = positive_decimal(data.get('price')) if isinstance(data, dict) else None
        if price is None:
            raise ProviderError('No price in response')
        return price


class MetalsLiveProvider(GoldPriceProvider):
    URL = 'https://api.metals.live/v1/spot/gold'

    @property
    def name(self) -> str:
        return 'metals.live'

    async def fetch_price_per_ounce(self) -> Decimal:
        data = await self._request(self.URL, headers={'User-Agent': USER_AGENT})
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ProviderError('Invalid response format')
        price = positive_decimal(data[0].get('price'))
        if price is None:
            raise ProviderError('Invalid response format')
        return price


class GoldPriceOrgProvider(GoldPriceProvider):
    URL = 'https://data-asg.goldprice.org/dbXRates/USD'

    @property
    def name(self) -> str:
        return 'goldprice.org'

    async def fetch_price_per_ounce(self) -> Decimal:
        data = await self._request(self.URL, headers={'User-Agent': USER_AGENT})
        items = data.get('items') if isinstance(data, dict) else None
        first = items[0] if isinstance(items, list) and items else None
        price = positive_decimal(first.get('xauPrice')) if isinstance(first, dict) else None
        if price is None:
            raise ProviderError('No price in response')
        return price
