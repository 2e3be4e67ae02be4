import logging
from datetime import timedelta
from decimal import Decimal

from application.services.rate_source_chain import RateSourceChain
from domain.models.currency import USD_CODE, RateAttemptStats, RateResult, RefreshResult
from infrastructure.cache.redis_cache import RedisRateCache
from infrastructure.persistence.repositories.currency import CurrencyRepository
from infrastructure.persistence.repositories.rate_attempt import (
    DEFAULT_COOLDOWN,
    DEFAULT_MAX_CACHE_AGE,
    RateAttemptRepository,
)
from utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


class RateService:
    """Best-effort USD rates: fresh cache, then cooldown check, then the provider chain.

    Never raises because a rate is unavailable; callers read ``RateResult.not_found``.
    """

    def __init__(
        self,
        chain: RateSourceChain,
        attempts: RateAttemptRepository,
        currencies: CurrencyRepository,
        cache: RedisRateCache | None = None,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        max_cache_age: timedelta = DEFAULT_MAX_CACHE_AGE,
        clock: Clock = utc_now,
    ):
        self.chain = chain
        self.attempts = attempts
        self.currencies = currencies
        self.cache = cache
        self.cooldown = cooldown
        self.max_cache_age = max_cache_age
        self.clock = clock

    async def _cached_rates(self, codes: list[str]) -> dict[str, Decimal]:
        if self.cache:
            snapshot = await self.cache.get_cached_rates()
            # a snapshot taken before a concurrent write may miss codes the store now has
            if snapshot is not None and all(code in snapshot for code in codes):
                return snapshot

        cached = await self.attempts.get_all_cached(self.max_cache_age)
        if self.cache:
            await self.cache.set_cached_rates(cached)
        return cached

    async def _invalidate_cache(self) -> None:
        if self.cache:
            await self.cache.invalidate()

    async def fetch_rates_for(self, codes: list[str]) -> RateResult:
        result = RateResult()
        normalized = list(dict.fromkeys(c.strip().upper() for c in codes if c and c.strip()))

        if USD_CODE in normalized:
            result.usd_rates[USD_CODE] = Decimal(1)
            result.from_cache.append(USD_CODE)

        remaining = [c for c in normalized if c != USD_CODE]
        if not remaining:
            return result

        cached = await self._cached_rates(remaining)
        uncached = []
        for code in remaining:
            if code in cached:
                result.usd_rates[code] = cached[code]
                result.from_cache.append(code)
            else:
                uncached.append(code)

        if not uncached:
            return result

        eligible = await self.attempts.filter_needing_attempt(uncached, self.cooldown)
        cooling_down = [c for c in uncached if c not in eligible]
        if cooling_down:
            logger.debug(f'Skipping rate fetch for {cooling_down}: in cooldown')
            result.not_found.extend(cooling_down)

        if not eligible:
            return result

        chain_result = await self.chain.fetch(eligible)
        result.errors.extend(chain_result.errors)

        for code in eligible:
            if code in chain_result.rates:
                result.usd_rates[code] = chain_result.rates[code]
                result.newly_fetched.append(code)
            else:
                await self.attempts.record_not_found(code)
                result.not_found.append(code)

        await self._invalidate_cache()

        if result.not_found:
            logger.info(f'No rate available for {result.not_found}')
        return result

    async def can_attempt(self, code: str) -> bool:
        code = code.upper()
        if code == USD_CODE:
            return False
        return await self.attempts.should_attempt(code, self.cooldown)

    async def can_fetch_rate_for_currency(self, code: str) -> bool:
        """False when a rate is already stored or the code is in cooldown."""
        currency = await self.currencies.get_by_code(code)
        if currency and currency.usd_value is not None:
            return False
        return await self.can_attempt(code)

    async def refresh_currency_rates(self, codes: list[str]) -> RateResult:
        """Fetch rates and store every resolved value on the matching currencies."""
        result = await self.fetch_rates_for(codes)
        if result.usd_rates:
            await self.currencies.update_rates(result.usd_rates, self.clock())
        return result

    async def update_all_currency_values(self) -> RefreshResult:
        codes = await self.currencies.list_codes()
        result = await self.refresh_currency_rates(codes)
        updated = len([c for c in codes if c.upper() in result.usd_rates])
        logger.info(f'Currency rate refresh: {updated}/{len(codes)} updated, {len(result.errors)} errors')
        return RefreshResult(updated_count=updated, errors=result.errors)

    async def force_refresh(self) -> RefreshResult:
        logger.warning('Force refresh: clearing all rate attempts')
        await self.attempts.clear_all()
        await self.currencies.clear_rate_updates()
        await self._invalidate_cache()
        return await self.update_all_currency_values()

    async def get_usd_value_by_code(self, code: str) -> Decimal | None:
        code = code.upper()
        if code == USD_CODE:
            return Decimal(1)
        currency = await self.currencies.get_by_code(code)
        if currency and currency.usd_value is not None:
            return currency.usd_value
        cached = await self.attempts.get_cached_value(code, self.max_cache_age)
        if cached is not None:
            return cached
        result = await self.fetch_rates_for([code])
        return result.usd_rates.get(code)

    async def get_stats(self) -> RateAttemptStats:
        return await self.attempts.get_stats()
