import logging
from decimal import Decimal

from application.services.conversion_service import calculate_gold_grams, empty_box
from domain.exceptions.box import BoxNotFoundError
from domain.exceptions.currency import InvalidCurrencyError
from domain.models.box import Box, Collection
from domain.models.currency import GOLD_CODE, USD_CODE
from infrastructure.persistence.repositories.box import BoxRepository, SadaqahRepository
from infrastructure.persistence.repositories.currency import CurrencyRepository
from utils.time import Clock, utc_now

logger = logging.getLogger(__name__)


class BoxService:
    def __init__(
        self,
        boxes: BoxRepository,
        sadaqahs: SadaqahRepository,
        currencies: CurrencyRepository,
        clock: Clock = utc_now,
    ):
        self.boxes = boxes
        self.sadaqahs = sadaqahs
        self.currencies = currencies
        self.clock = clock

    async def create_box(
        self, name: str, base_currency_code: str = USD_CODE, description: str | None = None
    ) -> Box:
        code = base_currency_code.strip().upper()
        if not code.isalnum() or len(code) > 10:
            raise InvalidCurrencyError(f'Invalid currency code: {base_currency_code}')

        if code == USD_CODE:
            currency = await self.currencies.get_default()
        else:
            currency = await self.currencies.get_or_create(code)

        box = await self.boxes.create(name, currency.id, self.clock(), description)
        logger.info(f'Created box {box.id} with base currency {currency.code}')
        return box

    async def get_box(self, box_id: str) -> Box:
        box = await self.boxes.get(box_id)
        if box is None:
            raise BoxNotFoundError(f'Box {box_id} not found')
        return box

    async def get_gold_grams(self, box: Box) -> Decimal:
        """Gold equivalent of the converted box total, in grams."""
        base = await self.currencies.get(box.base_currency_id)
        gold = await self.currencies.get_by_code(GOLD_CODE)
        return calculate_gold_grams(
            box.total_value,
            base.usd_value if base else None,
            gold.usd_value if gold else None,
        )

    async def collect_box(self, box_id: str) -> Collection:
        """Snapshot the box totals into a collection and start the box over."""
        now = self.clock()
        # lock first so a sadaqah added meanwhile is either collected or kept whole
        box = await self.boxes.lock(box_id, now)
        if box is None:
            raise BoxNotFoundError(f'Box {box_id} not found')

        collection = await self.boxes.add_collection(box, now)
        removed = await self.sadaqahs.delete_for_box(box.id)
        await self.boxes.save_totals(empty_box(box), now)

        logger.info(f'Collected box {box.id}: {box.count} sadaqahs ({removed} rows removed)')
        return collection
