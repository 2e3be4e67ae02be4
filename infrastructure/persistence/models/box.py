from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.persistence.models.currency import AMOUNT_NUMERIC, Base, generate_id


class BoxDB(Base):
	__tablename__ = 'boxes'

	id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: generate_id('box'))
	name: Mapped[str] = mapped_column(String(100), nullable=False)
	description: Mapped[str | None] = mapped_column(String(500), nullable=True)
	base_currency_id: Mapped[str] = mapped_column(ForeignKey('currencies.id'), nullable=False)
	count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
	total_value: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False, default=Decimal('0'))
	# {currency_id: {"total": "<decimal>", "code": ..., "name": ...}}
	total_value_extra: Mapped[dict | None] = mapped_column(JSON, nullable=True)
	created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
	updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SadaqahDB(Base):
	__tablename__ = 'sadaqahs'

	id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: generate_id('sad'))
	box_id: Mapped[str] = mapped_column(ForeignKey('boxes.id', ondelete='CASCADE'), nullable=False)
	value: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
	currency_id: Mapped[str] = mapped_column(ForeignKey('currencies.id'), nullable=False)
	converted_value: Mapped[Decimal | None] = mapped_column(AMOUNT_NUMERIC, nullable=True)
	created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

	__table_args__ = (
		Index('idx_sadaqah_box_id', 'box_id'),
		Index('idx_sadaqah_currency_id', 'currency_id'),
	)


class CollectionDB(Base):
	__tablename__ = 'collections'

	id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: generate_id('col'))
	box_id: Mapped[str] = mapped_column(ForeignKey('boxes.id', ondelete='CASCADE'), nullable=False, index=True)
	currency_id: Mapped[str] = mapped_column(ForeignKey('currencies.id'), nullable=False)
	emptied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
	sadaqah_count: Mapped[int] = mapped_column(Integer, nullable=False)
	total_value: Mapped[Decimal] = mapped_column(AMOUNT_NUMERIC, nullable=False)
	total_value_extra: Mapped[dict | None] = mapped_column(JSON, nullable=True)
