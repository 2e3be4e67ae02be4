import logging
from dataclasses import dataclass, field
from decimal import Decimal

from domain.models.currency import GOLD_CODE, AssetGroup
from infrastructure.persistence.repositories.currency import CurrencyRepository
from infrastructure.persistence.repositories.rate_attempt import RateAttemptRepository
from infrastructure.providers.base import RateProvider
from utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ChainResult:
    rates: dict[str, Decimal] = field(default_factory=dict)
    written: set[str] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)


class RateSourceChain:
    """Queries provider groups in priority order until the requested codes are resolved.

    Every successful provider call is written through to the attempt store
    and to the currencies table for all codes it returned, not only the
    requested ones.
    """

    def __init__(
        self,
        providers: list[RateProvider],
        attempts: RateAttemptRepository,
        currencies: CurrencyRepository,
        clock: Clock = utc_now,
    ):
        self.providers = providers
        self.attempts = attempts
        self.currencies = currencies
        self.clock = clock

    def _group(self, group: AssetGroup) -> list[RateProvider]:
        return [p for p in self.providers if p.group == group]

    @staticmethod
    def _plan(codes: list[str]) -> list[tuple[AssetGroup, set[str]]]:
        gold = {c for c in codes if c == GOLD_CODE}
        other = {c for c in codes if c != GOLD_CODE}
        plan = []
        if other:
            plan.append((AssetGroup.FIAT, other))
            plan.append((AssetGroup.CRYPTO, other))
        if gold:
            plan.append((AssetGroup.GOLD, gold))
        return plan

    async def fetch(self, codes: list[str]) -> ChainResult:
        wanted = list(dict.fromkeys(c.upper() for c in codes))
        result = ChainResult()

        for group, targets in self._plan(wanted):
            pending = targets - result.rates.keys()
            if not pending:
                continue

            providers = self._group(group)
            failures = 0
            for provider in providers:
                if not pending - result.rates.keys():
                    break
                try:
                    rates = await provider.fetch()
                except Exception as e:
                    failures += 1
                    logger.warning(
                        f'Provider {provider.name} failed: {e}',
                        extra={'provider': provider.name, 'group': group.value},
                    )
                    result.errors.append(f'{provider.name}: {e}')
                    continue

                fresh = {code: value for code, value in rates.items() if code not in result.written}
                await self._write_through(provider.name, fresh)
                result.written.update(fresh)
                for code in pending:
                    if code in fresh:
                        result.rates[code] = fresh[code]

            if providers and failures == len(providers):
                result.errors.append(f'All {group.value} providers failed')

        return result

    async def _write_through(self, provider_name: str, rates: dict[str, Decimal]) -> None:
        if not rates:
            return
        await self.attempts.record_successes(rates, provider_name)
        updated = await self.currencies.update_rates(rates, self.clock())
        logger.info(
            f'{provider_name}: cached {len(rates)} rates, updated {len(updated)} currencies'
        )
