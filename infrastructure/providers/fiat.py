import logging
from decimal import Decimal

from domain.exceptions.currency import ProviderError
from domain.models.currency import AssetGroup
from infrastructure.providers.base import RateProvider, invert_table

logger = logging.getLogger(__name__)

# Quoted per troy ounce by fiat feeds; gold comes from the gold providers in grams
METAL_CODES = frozenset({'XAU', 'XAG', 'XPT', 'XPD'})


class FiatTableProvider(RateProvider):
    """USD-based fiat table: payload[table_key] maps codes to "1 USD = X units"."""

    group = AssetGroup.FIAT
    URL: str
    TABLE_KEY = 'rates'

    async def fetch(self) -> dict[str, Decimal]:
        data = await self._request(self.URL)
        table = data.get(self.TABLE_KEY) if isinstance(data, dict) else None
        if not isinstance(table, dict):
            raise ProviderError('No rates in response')

        rates = {
            code: value for code, value in invert_table(table).items()
            if code not in METAL_CODES
        }
        if not rates:
            raise ProviderError('No usable rates in response')

        logger.info(f'{self.name}: fetched {len(rates)} rates')
        return rates


class FawazAhmedProvider(FiatTableProvider):
    URL = 'https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@latest/v1/currencies/usd.json'
    TABLE_KEY = 'usd'

    @property
    def name(self) -> str:
        return 'fawazahmed0'


class ExchangeRateAPIProvider(FiatTableProvider):
    URL = 'https://open.er-api.com/v6/latest/USD'

    @property
    def name(self) -> str:
        return 'exchangerate-api'


class FrankfurterProvider(FiatTableProvider):
    URL = 'https://api.frankfurter.app/latest?from=USD'

    @property
    def name(self) -> str:
        return 'frankfurter'


class ExchangerateHostProvider(FiatTableProvider):
    URL = 'https://api.exchangerate.host/latest?base=USD'

    @property
    def name(self) -> str:
        return 'exchangerate-host'
