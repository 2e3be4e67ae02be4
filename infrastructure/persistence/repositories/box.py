from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from domain.models.box import Box, Collection, ExtraValueEntry, Sadaqah
from infrastructure.persistence.models.box import BoxDB, CollectionDB, SadaqahDB


def extra_from_json(data: dict | None) -> dict[str, ExtraValueEntry]:
	return {
		currency_id: ExtraValueEntry(
			total=Decimal(str(entry['total'])),
			code=entry['code'],
			name=entry['name'],
		)
		for currency_id, entry in (data or {}).items()
	}


def extra_to_json(extra: dict[str, ExtraValueEntry]) -> dict:
	# Decimals are stored as strings so the JSON column round-trips them exactly
	return {
		currency_id: {'total': str(entry.total), 'code': entry.code, 'name': entry.name}
		for currency_id, entry in extra.items()
	}


class BoxRepository:
	def __init__(self, db_session: AsyncSession):
		self.db_session = db_session

	@staticmethod
	def _to_domain(row: BoxDB) -> Box:
		return Box(
			id=row.id,
			name=row.name,
			description=row.description,
			base_currency_id=row.base_currency_id,
			count=row.count,
			total_value=row.total_value,
			total_value_extra=extra_from_json(row.total_value_extra),
			created_at=row.created_at,
			updated_at=row.updated_at,
		)

	async def _get_row(self, box_id: str) -> BoxDB | None:
		stmt = select(BoxDB).where(BoxDB.id == box_id).execution_options(populate_existing=True)
		return (await self.db_session.execute(stmt)).scalar_one_or_none()

	async def get(self, box_id: str) -> Box | None:
		row = await self._get_row(box_id)
		return self._to_domain(row) if row else None

	async def create(
		self, name: str, base_currency_id: str, created_at: datetime, description: str | None = None
	) -> Box:
		row = BoxDB(
			name=name,
			description=description,
			base_currency_id=base_currency_id,
			count=0,
			total_value=Decimal('0'),
			total_value_extra={},
			created_at=created_at,
			updated_at=created_at,
		)
		self.db_session.add(row)
		await self.db_session.flush()
		return self._to_domain(row)

	async def lock(self, box_id: str, updated_at: datetime) -> Box | None:
		"""Take the write lock on a box row and return its committed state.

		The touch UPDATE holds a row lock on PostgreSQL and the database write
		lock on SQLite until the transaction ends, so totals computed from the
		returned box cannot be overwritten by a concurrent writer.
		"""
		result = await self.db_session.execute(
			update(BoxDB)
			.where(BoxDB.id == box_id)
			.values(updated_at=updated_at)
			.execution_options(synchronize_session=False)
		)
		if not result.rowcount:
			return None
		return await self.get(box_id)

	async def update_totals(
		self, box_id: str, change: Callable[[Box], Box], updated_at: datetime
	) -> Box | None:
		"""Apply ``change`` to the locked, freshly read box and persist the result."""
		box = await self.lock(box_id, updated_at)
		if box is None:
			return None
		return await self.save_totals(change(box), updated_at)

	async def save_totals(self, box: Box, updated_at: datetime) -> Box:
		"""Persist count and totals of an already-updated box aggregate."""
		row = await self._get_row(box.id)
		row.count = box.count
		row.total_value = box.total_value
		row.total_value_extra = extra_to_json(box.total_value_extra)
		row.updated_at = updated_at
		await self.db_session.flush()
		return self._to_domain(row)

	async def add_collection(
		self, box: Box, emptied_at: datetime
	) -> Collection:
		row = CollectionDB(
			box_id=box.id,
			currency_id=box.base_currency_id,
			emptied_at=emptied_at,
			sadaqah_count=box.count,
			total_value=box.total_value,
			total_value_extra=extra_to_json(box.total_value_extra),
		)
		self.db_session.add(row)
		await self.db_session.flush()
		return Collection(
			id=row.id,
			box_id=row.box_id,
			currency_id=row.currency_id,
			emptied_at=row.emptied_at,
			sadaqah_count=row.sadaqah_count,
			total_value=row.total_value,
			total_value_extra=extra_from_json(row.total_value_extra),
		)


class SadaqahRepository:
	def __init__(self, db_session: AsyncSession):
		self.db_session = db_session

	@staticmethod
	def _to_domain(row: SadaqahDB) -> Sadaqah:
		return Sadaqah(
			id=row.id,
			box_id=row.box_id,
			value=row.value,
			currency_id=row.currency_id,
			converted_value=row.converted_value,
			created_at=row.created_at,
		)

	async def get(self, box_id: str, sadaqah_id: str) -> Sadaqah | None:
		stmt = select(SadaqahDB).where(SadaqahDB.id == sadaqah_id, SadaqahDB.box_id == box_id)
		row = (await self.db_session.execute(stmt)).scalar_one_or_none()
		return self._to_domain(row) if row else None

	async def list_for_box(self, box_id: str) -> list[Sadaqah]:
		stmt = select(SadaqahDB).where(SadaqahDB.box_id == box_id).order_by(SadaqahDB.created_at.desc())
		rows = (await self.db_session.execute(stmt)).scalars().all()
		return [self._to_domain(r) for r in rows]

	async def create(
		self,
		box_id: str,
		value: Decimal,
		currency_id: str,
		converted_value: Decimal | None,
		created_at: datetime,
	) -> Sadaqah:
		row = SadaqahDB(
			box_id=box_id,
			value=value,
			currency_id=currency_id,
			converted_value=converted_value,
			created_at=created_at,
		)
		self.db_session.add(row)
		await self.db_session.flush()
		return self._to_domain(row)

	async def delete(self, sadaqah_id: str) -> None:
		await self.db_session.execute(delete(SadaqahDB).where(SadaqahDB.id == sadaqah_id))

	async def delete_for_box(self, box_id: str) -> int:
		result = await self.db_session.execute(delete(SadaqahDB).where(SadaqahDB.box_id == box_id))
		return result.rowcount or 0
