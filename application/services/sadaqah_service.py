import logging
from collections.abc import Callable
from datetime import timedelta
from decimal import Decimal

from application.services.conversion_service import apply_addition, apply_removal, convert
from application.services.rate_service import RateService
from domain.exceptions.box import BoxNotFoundError, InvalidAmountError, SadaqahNotFoundError
from domain.exceptions.currency import CurrencyNotFoundError, InvalidCurrencyError
from domain.models.box import Box, Sadaqah
from domain.models.currency import USD_CODE, Currency
from infrastructure.persistence.repositories.box import BoxRepository, SadaqahRepository
from infrastructure.persistence.repositories.currency import CurrencyRepository
from infrastructure.persistence.repositories.rate_attempt import DEFAULT_MAX_CACHE_AGE
from utils.time import Clock, utc_now

logger = logging.getLogger(__name__)

RefreshScheduler = Callable[[list[str]], object]


class SadaqahService:
    def __init__(
        self,
        boxes: BoxRepository,
        sadaqahs: SadaqahRepository,
        currencies: CurrencyRepository,
        rate_service: RateService,
        schedule_refresh: RefreshScheduler | None = None,
        max_rate_age: timedelta = DEFAULT_MAX_CACHE_AGE,
        clock: Clock = utc_now,
    ):
        self.boxes = boxes
        self.sadaqahs = sadaqahs
        self.currencies = currencies
        self.rate_service = rate_service
        self.schedule_refresh = schedule_refresh
        self.max_rate_age = max_rate_age
        self.clock = clock

    async def _get_box(self, box_id: str) -> Box:
        box = await self.boxes.get(box_id)
        if box is None:
            raise BoxNotFoundError(f'Box {box_id} not found')
        return box

    async def _resolve_currency(
        self, box: Box, currency_id: str | None, currency_code: str | None
    ) -> Currency:
        if currency_id:
            currency = await self.currencies.get(currency_id)
            if currency is None:
                raise CurrencyNotFoundError(f'Currency {currency_id} not found')
            return currency
        if currency_code:
            code = currency_code.strip().upper()
            if not code.isalnum() or len(code) > 10:
                raise InvalidCurrencyError(f'Invalid currency code: {currency_code}')
            return await self.currencies.get_or_create(code)
        return await self._get_base_currency(box)

    async def _get_base_currency(self, box: Box) -> Currency:
        base = await self.currencies.get(box.base_currency_id)
        if base is None:
            raise CurrencyNotFoundError(f'Base currency {box.base_currency_id} not found')
        return base

    def _schedule(self, codes: list[str]) -> None:
        if self.schedule_refresh is None or not codes:
            return
        logger.info(f'Scheduling background rate refresh for {codes}')
        self.schedule_refresh(codes)

    def _is_stale(self, currency: Currency) -> bool:
        if currency.code == USD_CODE or currency.usd_value is None:
            return False
        if currency.last_rate_update is None:
            return True
        return self.clock() - currency.last_rate_update > self.max_rate_age

    async def _ensure_rates(self, currency: Currency, base: Currency) -> tuple[Currency, Currency]:
        """Make sure both currencies carry a USD value when one can be had.

        Blocks on a live fetch only when a missing code is fetchable right now;
        otherwise the caller degrades and a refresh runs in the background.
        """
        missing = [c.code for c in (currency, base) if c.usd_value is None]
        if missing:
            fetchable = [
                code for code in missing
                if await self.rate_service.can_fetch_rate_for_currency(code)
            ]
            if fetchable:
                result = await self.rate_service.refresh_currency_rates(missing)
                if result.errors:
                    logger.warning(f'Rate fetch for {missing} reported errors: {result.errors}')
                currency = await self.currencies.get(currency.id) or currency
                base = await self.currencies.get(base.id) or base
            else:
                self._schedule(missing)

        stale = [c.code for c in (currency, base) if self._is_stale(c)]
        self._schedule(stale)
        return currency, base

    async def add_sadaqah(
        self,
        box_id: str,
        value: Decimal,
        currency_id: str | None = None,
        currency_code: str | None = None,
    ) -> tuple[Sadaqah, Box]:
        if value <= 0:
            raise InvalidAmountError(f'Sadaqah value must be positive, got {value}')

        box = await self._get_box(box_id)
        currency = await self._resolve_currency(box, currency_id, currency_code)
        base = await self._get_base_currency(box)

        if currency.id != base.id:
            currency, base = await self._ensure_rates(currency, base)
        converted = convert(value, currency, base)

        if converted is None:
            logger.info(
                f'No rate for {currency.code} -> {base.code}; '
                f'adding {value} {currency.code} to unconverted totals of box {box.id}'
            )

        now = self.clock()
        sadaqah = await self.sadaqahs.create(
            box_id=box.id,
            value=value,
            currency_id=currency.id,
            converted_value=converted,
            created_at=now,
        )
        # totals are recomputed from the row as it is now, not as read before the rate fetch
        box = await self.boxes.update_totals(
            box.id, lambda fresh: apply_addition(fresh, value, currency, converted), now
        )
        if box is None:
            raise BoxNotFoundError(f'Box {box_id} not found')
        return sadaqah, box

    async def delete_sadaqah(self, box_id: str, sadaqah_id: str) -> Box:
        box = await self._get_box(box_id)
        sadaqah = await self.sadaqahs.get(box_id, sadaqah_id)
        if sadaqah is None:
            raise SadaqahNotFoundError(f'Sadaqah {sadaqah_id} not found in box {box_id}')

        await self.sadaqahs.delete(sadaqah.id)
        updated = await self.boxes.update_totals(
            box.id,
            lambda fresh: apply_removal(
                fresh, sadaqah.value, sadaqah.currency_id, sadaqah.converted_value
            ),
            self.clock(),
        )
        if updated is None:
            raise BoxNotFoundError(f'Box {box_id} not found')
        return updated

    async def list_sadaqahs(self, box_id: str) -> list[Sadaqah]:
        await self._get_box(box_id)
        return await self.sadaqahs.list_for_box(box_id)
