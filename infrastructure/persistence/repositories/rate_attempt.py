import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from domain.models.currency import CurrencyRateAttempt, RateAttemptStats
from infrastructure.persistence.models.currency import CurrencyRateAttemptDB, generate_id
from utils.time import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(hours=1)
DEFAULT_MAX_CACHE_AGE = timedelta(hours=2)
# Keeps multi-row upserts under SQLite's bound parameter limit
UPSERT_CHUNK_SIZE = 100


class RateAttemptRepository:
    """Per-code memory of rate lookups.

    Remembers when each currency code was last looked up, whether a provider
    knew it, and the last USD value seen. Used to throttle lookups of unknown
    codes and to serve cached values while they are fresh enough.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        max_cache_age: timedelta = DEFAULT_MAX_CACHE_AGE,
        clock: Clock = utc_now,
    ):
        self.db_session = db_session
        self.cooldown = cooldown
        self.max_cache_age = max_cache_age
        self.clock = clock

    def _insert(self):
        dialect = self.db_session.bind.dialect.name
        if dialect == 'postgresql':
            return postgresql.insert(CurrencyRateAttemptDB)
        if dialect == 'sqlite':
            return sqlite.insert(CurrencyRateAttemptDB)
        raise NotImplementedError(f'Upsert not supported for dialect {dialect}')

    @staticmethod
    def _to_domain(row: CurrencyRateAttemptDB) -> CurrencyRateAttempt:
        return CurrencyRateAttempt(
            currency_code=row.currency_code,
            last_attempt_at=row.last_attempt_at,
            last_success_at=row.last_success_at,
            usd_value=row.usd_value,
            source_provider=row.source_provider,
            attempt_count=row.attempt_count,
            found=row.found,
        )

    async def get(self, code: str) -> CurrencyRateAttempt | None:
        stmt = (
            select(CurrencyRateAttemptDB)
            .where(CurrencyRateAttemptDB.currency_code == code.upper())
            .execution_options(populate_existing=True)
        )
        row = (await self.db_session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(row) if row else None

    async def get_many(self, codes: list[str]) -> dict[str, CurrencyRateAttempt]:
        upper = {c.upper() for c in codes}
        if not upper:
            return {}
        stmt = (
            select(CurrencyRateAttemptDB)
            .where(CurrencyRateAttemptDB.currency_code.in_(upper))
            .execution_options(populate_existing=True)
        )
        rows = (await self.db_session.execute(stmt)).scalars().all()
        return {r.currency_code: self._to_domain(r) for r in rows}

    @staticmethod
    def _attempt_allowed(
        attempt: CurrencyRateAttempt | None, now: datetime, cooldown: timedelta
    ) -> bool:
        # Successes and failures share the cooldown; cached rates need refreshing too
        if attempt is None:
            return True
        return now - attempt.last_attempt_at >= cooldown

    async def should_attempt(self, code: str, cooldown: timedelta | None = None) -> bool:
        if cooldown is None:
            cooldown = self.cooldown
        attempt = await self.get(code)
        return self._attempt_allowed(attempt, self.clock(), cooldown)

    async def filter_needing_attempt(
        self, codes: list[str], cooldown: timedelta | None = None
    ) -> list[str]:
        """Codes (uppercased, de-duplicated, order kept) that may be looked up now."""
        ordered = list(dict.fromkeys(c.upper() for c in codes))
        attempts = await self.get_many(ordered)
        now = self.clock()
        if cooldown is None:
            cooldown = self.cooldown
        return [c for c in ordered if self._attempt_allowed(attempts.get(c), now, cooldown)]

    async def record_success(self, code: str, usd_value: Decimal, provider: str) -> None:
        await self.record_successes({code: usd_value}, provider)

    async def record_successes(self, rates: dict[str, Decimal], provider: str) -> None:
        """Upsert every code of a provider table, a chunk of rows per statement."""
        by_code = {code.upper(): usd_value for code, usd_value in rates.items()}
        if not by_code:
            return
        now = self.clock()
        items = list(by_code.items())
        for start in range(0, len(items), UPSERT_CHUNK_SIZE):
            await self._upsert_successes(items[start:start + UPSERT_CHUNK_SIZE], provider, now)

    async def _upsert_successes(
        self, items: list[tuple[str, Decimal]], provider: str, now: datetime
    ) -> None:
        stmt = self._insert().values([
            {
                'id': generate_id('rat'),
                'currency_code': code,
                'last_attempt_at': now,
                'last_success_at': now,
                'usd_value': usd_value,
                'source_provider': provider,
                'attempt_count': 1,
                'found': True,
            }
            for code, usd_value in items
        ])
        stmt = stmt.on_conflict_do_update(
            index_elements=[CurrencyRateAttemptDB.currency_code],
            set_={
                'last_attempt_at': stmt.excluded.last_attempt_at,
                'last_success_at': stmt.excluded.last_success_at,
                'usd_value': stmt.excluded.usd_value,
                'source_provider': stmt.excluded.source_provider,
                'attempt_count': CurrencyRateAttemptDB.attempt_count + 1,
                'found': True,
            },
        )
        await self.db_session.execute(stmt)

    async def record_not_found(self, code: str) -> None:
        """Mark a failed lookup. The last known value and success time are kept."""
        now = self.clock()
        stmt = self._insert().values(
            id=generate_id('rat'),
            currency_code=code.upper(),
            last_attempt_at=now,
            attempt_count=1,
            found=False,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CurrencyRateAttemptDB.currency_code],
            set_={
                'last_attempt_at': now,
                'attempt_count': CurrencyRateAttemptDB.attempt_count + 1,
                'found': False,
            },
        )
        await self.db_session.execute(stmt)

    @staticmethod
    def _is_fresh(attempt: CurrencyRateAttempt, now: datetime, max_age: timedelta) -> bool:
        return (
            attempt.found
            and attempt.usd_value is not None
            and attempt.last_success_at is not None
            and now - attempt.last_success_at <= max_age
        )

    async def get_cached_value(
        self, code: str, max_age: timedelta | None = None
    ) -> Decimal | None:
        if max_age is None:
            max_age = self.max_cache_age
        attempt = await self.get(code)
        if attempt and self._is_fresh(attempt, self.clock(), max_age):
            return attempt.usd_value
        return None

    async def get_all_cached(self, max_age: timedelta | None = None) -> dict[str, Decimal]:
        stmt = (
            select(CurrencyRateAttemptDB)
            .where(
                CurrencyRateAttemptDB.found.is_(True),
                CurrencyRateAttemptDB.usd_value.is_not(None),
            )
            .execution_options(populate_existing=True)
        )
        rows = (await self.db_session.execute(stmt)).scalars().all()
        now = self.clock()
        if max_age is None:
            max_age = self.max_cache_age
        return {
            r.currency_code: r.usd_value
            for r in rows
            if self._is_fresh(self._to_domain(r), now, max_age)
        }

    async def clear_for_code(self, code: str) -> None:
        await self.db_session.execute(
            delete(CurrencyRateAttemptDB).where(CurrencyRateAttemptDB.currency_code == code.upper())
        )

    async def clear_all(self) -> None:
        await self.db_session.execute(delete(CurrencyRateAttemptDB))
        logger.info('Cleared all currency rate attempts')

    async def delete_older_than(self, age: timedelta) -> int:
        cutoff = self.clock() - age
        result = await self.db_session.execute(
            delete(CurrencyRateAttemptDB).where(CurrencyRateAttemptDB.last_attempt_at < cutoff)
        )
        return result.rowcount or 0

    async def get_stats(self) -> RateAttemptStats:
        total = await self.db_session.scalar(select(func.count(CurrencyRateAttemptDB.id)))
        found = await self.db_session.scalar(
            select(func.count(CurrencyRateAttemptDB.id)).where(CurrencyRateAttemptDB.found.is_(True))
        )
        with_value = await self.db_session.scalar(
            select(func.count(CurrencyRateAttemptDB.id)).where(
                CurrencyRateAttemptDB.usd_value.is_not(None)
            )
        )
        total = total or 0
        found = found or 0
        return RateAttemptStats(
            total=total,
            found=found,
            not_found=total - found,
            with_cached_value=with_value or 0,
        )
