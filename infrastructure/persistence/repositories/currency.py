from datetime import datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from domain.models.currency import USD_CODE, Currency
from infrastructure.persistence.models.currency import CurrencyDB

DEFAULT_CURRENCY_NAME = 'US Dollar'
DEFAULT_CURRENCY_SYMBOL = '$'


class CurrencyRepository:
	def __init__(self, db_session: AsyncSession):
		self.db_session = db_session

	@staticmethod
	def _to_domain(row: CurrencyDB) -> Currency:
		return Currency(
			id=row.id,
			code=row.code,
			name=row.name,
			symbol=row.symbol,
			usd_value=row.usd_value,
			last_rate_update=row.last_rate_update,
		)

	async def get(self, currency_id: str) -> Currency | None:
		stmt = (
			select(CurrencyDB)
			.where(CurrencyDB.id == currency_id)
			.execution_options(populate_existing=True)
		)
		row = (await self.db_session.execute(stmt)).scalar_one_or_none()
		return self._to_domain(row) if row else None

	async def get_by_code(self, code: str) -> Currency | None:
		stmt = (
			select(CurrencyDB)
			.where(CurrencyDB.code == code.upper())
			.execution_options(populate_existing=True)
		)
		row = (await self.db_session.execute(stmt)).scalar_one_or_none()
		return self._to_domain(row) if row else None

	async def list_all(self) -> list[Currency]:
		stmt = select(CurrencyDB).order_by(CurrencyDB.code).execution_options(populate_existing=True)
		rows = (await self.db_session.execute(stmt)).scalars().all()
		return [self._to_domain(r) for r in rows]

	async def list_codes(self) -> list[str]:
		result = await self.db_session.execute(select(CurrencyDB.code).order_by(CurrencyDB.code))
		return list(result.scalars().all())

	async def create(self, code: str, name: str, symbol: str | None = None) -> Currency:
		code = code.upper()
		row = CurrencyDB(
			code=code,
			name=name,
			symbol=symbol,
			usd_value=Decimal(1) if code == USD_CODE else None,
		)
		self.db_session.add(row)
		await self.db_session.flush()
		return self._to_domain(row)

	async def get_or_create(self, code: str, name: str | None = None, symbol: str | None = None) -> Currency:
		existing = await self.get_by_code(code)
		if existing:
			return existing
		return await self.create(code, name or code.upper(), symbol)

	async def get_default(self) -> Currency:
		return await self.get_or_create(USD_CODE, DEFAULT_CURRENCY_NAME, DEFAULT_CURRENCY_SYMBOL)

	async def update_rate(self, code: str, usd_value: Decimal, updated_at: datetime) -> bool:
		"""Store the best known USD value for a code. Returns False when no row has that code."""
		result = await self.db_session.execute(
			update(CurrencyDB)
			.where(CurrencyDB.code == code.upper())
			.values(usd_value=usd_value, last_rate_update=updated_at)
		)
		return (result.rowcount or 0) > 0

	async def update_rates(self, rates: dict[str, Decimal], updated_at: datetime) -> list[str]:
		"""Write rates into the currencies that exist; returns the codes updated."""
		wanted = {code.upper(): value for code, value in rates.items()}
		if not wanted:
			return []
		result = await self.db_session.execute(
			select(CurrencyDB.code).where(CurrencyDB.code.in_(wanted))
		)
		known = list(result.scalars().all())
		for code in known:
			await self.update_rate(code, wanted[code], updated_at)
		return known

	async def clear_rate_updates(self) -> None:
		await self.db_session.execute(update(CurrencyDB).values(last_rate_update=None))
