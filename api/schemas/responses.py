from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from domain.models.box import Box, Collection, ExtraValueEntry, Sadaqah
from domain.models.currency import Currency, RateAttemptStats, RateResult, RefreshResult


class CurrencyResponse(BaseModel):
	id: str
	code: str
	name: str
	symbol: str | None = None
	usd_value: Decimal | None = Field(None, description='USD value of one unit')
	last_rate_update: datetime | None = None

	@classmethod
	def from_domain(cls, currency: Currency) -> 'CurrencyResponse':
		return cls(
			id=currency.id,
			code=currency.code,
			name=currency.name,
			symbol=currency.symbol,
			usd_value=currency.usd_value,
			last_rate_update=currency.last_rate_update,
		)


class CurrenciesResponse(BaseModel):
	currencies: list[CurrencyResponse]


class RatesResponse(BaseModel):
	success: bool
	usd_rates: dict[str, Decimal] = Field(..., description='USD value of one unit per code')
	from_cache: list[str]
	newly_fetched: list[str]
	not_found: list[str] = Field(..., description='Unavailable for now, possibly in cooldown')
	errors: list[str]

	@classmethod
	def from_domain(cls, result: RateResult) -> 'RatesResponse':
		return cls(
			success=result.success,
			usd_rates=result.usd_rates,
			from_cache=result.from_cache,
			newly_fetched=result.newly_fetched,
			not_found=result.not_found,
			errors=result.errors,
		)


class CanFetchResponse(BaseModel):
	code: str
	can_fetch: bool


class RefreshResponse(BaseModel):
	updated_count: int
	errors: list[str]

	@classmethod
	def from_domain(cls, result: RefreshResult) -> 'RefreshResponse':
		return cls(updated_count=result.updated_count, errors=result.errors)


class RateStatsResponse(BaseModel):
	total: int
	found: int
	not_found: int
	with_cached_value: int

	@classmethod
	def from_domain(cls, stats: RateAttemptStats) -> 'RateStatsResponse':
		return cls(
			total=stats.total,
			found=stats.found,
			not_found=stats.not_found,
			with_cached_value=stats.with_cached_value,
		)


class ExtraValueResponse(BaseModel):
	total: Decimal
	code: str
	name: str


def _extra(extra: dict[str, ExtraValueEntry]) -> dict[str, ExtraValueResponse]:
	return {
		currency_id: ExtraValueResponse(total=e.total, code=e.code, name=e.name)
		for currency_id, e in extra.items()
	}


class BoxResponse(BaseModel):
	id: str
	name: str
	description: str | None = None
	base_currency_id: str
	count: int
	total_value: Decimal = Field(..., description='Total in the base currency')
	total_value_extra: dict[str, ExtraValueResponse] = Field(
		..., description='Amounts not convertible to the base currency, keyed by currency id'
	)
	gold_grams: Decimal | None = Field(
		None, description='Gold equivalent of total_value in grams, 0 while a rate is missing'
	)
	created_at: datetime | None = None
	updated_at: datetime | None = None

	@classmethod
	def from_domain(cls, box: Box, gold_grams: Decimal | None = None) -> 'BoxResponse':
		return cls(
			id=box.id,
			name=box.name,
			description=box.description,
			base_currency_id=box.base_currency_id,
			count=box.count,
			total_value=box.total_value,
			total_value_extra=_extra(box.total_value_extra),
			created_at=box.created_at,
			updated_at=box.updated_at,
			gold_grams=gold_grams,
		)


class SadaqahResponse(BaseModel):
	id: str
	box_id: str
	value: Decimal
	currency_id: str
	converted_value: Decimal | None = None
	created_at: datetime

	@classmethod
	def from_domain(cls, sadaqah: Sadaqah) -> 'SadaqahResponse':
		return cls(
			id=sadaqah.id,
			box_id=sadaqah.box_id,
			value=sadaqah.value,
			currency_id=sadaqah.currency_id,
			converted_value=sadaqah.converted_value,
			created_at=sadaqah.created_at,
		)


class AddSadaqahResponse(BaseModel):
	sadaqah: SadaqahResponse
	box: BoxResponse


class CollectionResponse(BaseModel):
	id: str
	box_id: str
	currency_id: str
	emptied_at: datetime
	sadaqah_count: int
	total_value: Decimal
	total_value_extra: dict[str, ExtraValueResponse]

	@classmethod
	def from_domain(cls, collection: Collection) -> 'CollectionResponse':
		return cls(
			id=collection.id,
			box_id=collection.box_id,
			currency_id=collection.currency_id,
			emptied_at=collection.emptied_at,
			sadaqah_count=collection.sadaqah_count,
			total_value=collection.total_value,
			total_value_extra=_extra(collection.total_value_extra),
		)
