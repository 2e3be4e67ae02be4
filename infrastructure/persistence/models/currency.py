import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
	Boolean,
	DateTime,
	Index,
	Integer,
	Numeric,
	String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Rates can be tiny (1 unit of a weak currency or meme coin in USD)
RATE_NUMERIC = Numeric(precision=30, scale=12)
AMOUNT_NUMERIC = Numeric(precision=24, scale=8)


def generate_id(prefix: str) -> str:
	return f'{prefix}_{uuid.uuid4().hex[:20]}'


class Base(DeclarativeBase):
	pass


class CurrencyDB(Base):
	__tablename__ = 'currencies'

	id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: generate_id('cur'))
	code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
	name: Mapped[str] = mapped_column(String(100), nullable=False)
	symbol: Mapped[str | None] = mapped_column(String(10), nullable=True)
	usd_value: Mapped[Decimal | None] = mapped_column(RATE_NUMERIC, nullable=True)
	last_rate_update: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class CurrencyRateAttemptDB(Base):
	__tablename__ = 'currency_rate_attempts'

	id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: generate_id('rat'))
	currency_code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
	last_attempt_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
	last_success_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
	usd_value: Mapped[Decimal | None] = mapped_column(RATE_NUMERIC, nullable=True)
	source_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
	attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
	found: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

	__table_args__ = (
		Index('idx_rate_attempt_last_attempt', 'last_attempt_at'),
		Index('idx_rate_attempt_found', 'found'),
	)

