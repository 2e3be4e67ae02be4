import httpx

from .base import RateProvider
from .crypto import CoinGeckoProvider, CryptoCompareProvider
from .fiat import (
    ExchangeRateAPIProvider,
    ExchangerateHostProvider,
    FawazAhmedProvider,
    FrankfurterProvider,
)
from .gold import GoldAPIProvider, GoldPriceOrgProvider, MetalsLiveProvider


def build_default_providers(settings, client: httpx.AsyncClient | None = None) -> list[RateProvider]:
    """All providers in priority order, sharing one HTTP client when given."""
    timeout = settings.PROVIDER_TIMEOUT_SECONDS
    return [
        FawazAhmedProvider(client=client, timeout=timeout),
        ExchangeRateAPIProvider(client=client, timeout=timeout),
        FrankfurterProvider(client=client, timeout=timeout),
        ExchangerateHostProvider(client=client, timeout=timeout),
        CryptoCompareProvider(settings.CRYPTOCOMPARE_API_KEY, client=client, timeout=timeout),
        CoinGeckoProvider(settings.COINGECKO_API_KEY, client=client, timeout=timeout),
        GoldAPIProvider(settings.GOLD_API_TOKEN, client=client, timeout=timeout),
        MetalsLiveProvider(client=client, timeout=timeout),
        GoldPriceOrgProvider(client=client, timeout=timeout),
    ]


__all__ = [
    'RateProvider',
    'build_default_providers',
    'CoinGeckoProvider',
    'CryptoCompareProvider',
    'ExchangeRateAPIProvider',
    'ExchangerateHostProvider',
    'FawazAhmedProvider',
    'FrankfurterProvider',
    'GoldAPIProvider',
    'GoldPriceOrgProvider',
    'MetalsLiveProvider',
]
