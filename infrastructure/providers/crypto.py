import logging
from decimal import Decimal

import httpx

from domain.exceptions.currency import ProviderError
from domain.models.currency import AssetGroup
from infrastructure.providers.base import RateProvider, invert_table, positive_decimal

logger = logging.getLogger(__name__)

CRYPTO_CODES = [
    'BTC', 'ETH', 'BNB', 'XRP', 'ADA', 'SOL', 'DOT', 'DOGE',
    'AVAX', 'LINK', 'LTC', 'UNI', 'XLM', 'USDT', 'USDC', 'BCH',
    'CRO', 'DAI', 'HBAR', 'ICP', 'KAS', 'LEO', 'NEAR', 'PEPE',
    'SHIB', 'SUI', 'TON', 'TRX', 'VET', 'APT', 'MATIC', 'ATOM',
    'FIL', 'ETC', 'ALGO', 'ARB', 'OP', 'IMX', 'GRT', 'STX',
]

COINGECKO_IDS = {
    'bitcoin': 'BTC', 'ethereum': 'ETH', 'binancecoin': 'BNB', 'ripple': 'XRP',
    'cardano': 'ADA', 'solana': 'SOL', 'polkadot': 'DOT', 'dogecoin': 'DOGE',
    'avalanche-2': 'AVAX', 'chainlink': 'LINK', 'litecoin': 'LTC', 'uniswap': 'UNI',
    'stellar': 'XLM', 'tether': 'USDT', 'usd-coin': 'USDC', 'bitcoin-cash': 'BCH',
    'cronos': 'CRO', 'dai': 'DAI', 'hedera-hashgraph': 'HBAR', 'internet-computer': 'ICP',
    'kaspa': 'KAS', 'leo-token': 'LEO', 'near': 'NEAR', 'pepe': 'PEPE',
    'shiba-inu': 'SHIB', 'sui': 'SUI', 'the-open-network': 'TON', 'tron': 'TRX',
    'vechain': 'VET', 'aptos': 'APT', 'polygon': 'MATIC', 'cosmos': 'ATOM',
    'filecoin': 'FIL', 'ethereum-classic': 'ETC', 'algorand': 'ALGO', 'arbitrum': 'ARB',
    'optimism': 'OP', 'immutable-x': 'IMX', 'the-graph': 'GRT', 'stacks': 'STX',
}


class CryptoCompareProvider(RateProvider):
    BASE_URL = 'https://min-api.cryptocompare.com/data/price'
    group = AssetGroup.CRYPTO

    def __init__(
        self, api_key: str = '', client: httpx.AsyncClient | None = None, timeout: int = 10
    ):
        super().__init__(client, timeout)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return 'cryptocompare'

    async def fetch(self) -> dict[str, Decimal]:
        params = {'fsym': 'USD', 'tsyms': ','.join(CRYPTO_CODES)}
        if self.api_key:
            params['api_key'] = self.api_key

        data = await self._request(self.BASE_URL, params=params)
        if not isinstance(data, dict):
            raise ProviderError('Invalid response format')
        if data.get('Response') == 'Error':
            raise ProviderError(data.get('Message') or 'API error')

        # 1 USD = X coins
        rates = invert_table({k: v for k, v in data.items() if isinstance(v, (int, float))})
        if not rates:
            raise ProviderError('No rates in response')

        logger.info(f'{self.name}: fetched {len(rates)} crypto rates')
        return rates


class CoinGeckoProvider(RateProvider):
    PUBLIC_URL = 'https://api.coingecko.com/api/v3/simple/price'
    PRO_URL = 'https://pro-api.coingecko.com/api/v3/simple/price'
    group = AssetGroup.CRYPTO

    def __init__(
        self, api_key: str = '', client: httpx.AsyncClient | None = None, timeout: int = 10
    ):
        super().__init__(client, timeout)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return 'coingecko'

    async def fetch(self) -> dict[str, Decimal]:
        params = {'ids': ','.join(COINGECKO_IDS), 'vs_currencies': 'usd'}
        url = self.PUBLIC_URL
        if self.api_key:
            url = self.PRO_URL
            params['x_cg_pro_api_key'] = self.api_key

        data = await self._request(url, params=params)
        if not isinstance(data, dict):
            raise ProviderError('Invalid response format')

        # Already USD per coin
        rates: dict[str, Decimal] = {}
        for coin_id, quote in data.items():
            code = COINGECKO_IDS.get(coin_id)
            if code is None or not isinstance(quote, dict):
                continue
            usd = positive_decimal(quote.get('usd'))
            if usd is not None:
                rates[code] = usd

        if not rates:
            raise ProviderError('No rates in response')

        logger.info(f'{self.name}: fetched {len(rates)} crypto rates')
        return rates
