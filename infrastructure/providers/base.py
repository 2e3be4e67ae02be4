import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from domain.exceptions.currency import ProviderError
from domain.models.currency import AssetGroup

logger = logging.getLogger(__name__)

USER_AGENT = 'SadaqahBox/1.0'


def positive_decimal(value) -> Decimal | None:
    """Parse an upstream number; missing, non-numeric, zero or negative values give None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite() or parsed <= 0:
        return None
    return parsed


def invert_table(table: dict) -> dict[str, Decimal]:
    """Turn "1 USD = X units" into "1 unit = X USD", dropping unusable entries."""
    rates: dict[str, Decimal] = {}
    for code, raw in table.items():
        per_usd = positive_decimal(raw)
        if per_usd is not None:
            rates[str(code).upper()] = Decimal(1) / per_usd
    return rates


class RateProvider(ABC):
    """One upstream rate API.

    ``fetch`` returns every rate the upstream table holds, as USD value of one
    unit keyed by uppercase code, or raises ``ProviderError``.
    """

    group: AssetGroup

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: int = 10):
        self._client = client or httpx.AsyncClient(
            timeout=timeout, headers={'Accept': 'application/json'}
        )

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def fetch(self) -> dict[str, Decimal]:
        ...

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.RemoteProtocolError)),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, max=2),
        reraise=True,
    )
    async def _get(self, url: str, params: dict | None, headers: dict | None) -> httpx.Response:
        return await self._client.get(url, params=params, headers=headers)

    async def _request(
        self, url: str, params: dict | None = None, headers: dict | None = None
    ):
        try:
            response = await self._get(url, params, headers)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f'HTTP {e.response.status_code}: {e.response.text[:200]}'
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(f'Request failed: {e.__class__.__name__}') from e
        except Exception as e:
            raise ProviderError(f'Response parsing error: {str(e)}') from e

    async def close(self) -> None:
        await self._client.aclose()
