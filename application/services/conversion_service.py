from dataclasses import replace
from decimal import Decimal

from domain.models.box import Box, ExtraValueEntry
from domain.models.currency import Currency

ZERO = Decimal('0')


def convert(amount: Decimal, from_currency: Currency, to_currency: Currency) -> Decimal | None:
	"""Convert through USD. None means unresolvable: a USD value is missing on either side."""
	if from_currency.id == to_currency.id:
		return amount
	if not from_currency.usd_value or not to_currency.usd_value:
		return None
	return amount * from_currency.usd_value / to_currency.usd_value


def calculate_gold_grams(amount: Decimal, currency_usd_value: Decimal | None, xau_usd_value: Decimal | None) -> Decimal:
	"""Grams of gold worth ``amount`` of a currency; 0 while either USD value is unknown.

	``xau_usd_value`` is the USD price of one gram, the unit gold providers report.
	"""
	if not currency_usd_value or not xau_usd_value or currency_usd_value <= 0 or xau_usd_value <= 0:
		return ZERO
	return amount * currency_usd_value / xau_usd_value


def apply_addition(box: Box, amount: Decimal, currency: Currency, converted: Decimal | None) -> Box:
	"""Add a donation to the box totals.

	``converted`` is the amount in the box base currency, or None to park the
	raw amount in the per-currency extra bucket.
	"""
	if converted is not None:
		return replace(box, count=box.count + 1, total_value=box.total_value + converted)

	extra = dict(box.total_value_extra)
	entry = extra.get(currency.id)
	total = (entry.total if entry else ZERO) + amount
	extra[currency.id] = ExtraValueEntry(total=total, code=currency.code, name=currency.name)
	return replace(box, count=box.count + 1, total_value_extra=extra)


def apply_removal(box: Box, amount: Decimal, currency_id: str, converted: Decimal | None) -> Box:
	"""Reverse ``apply_addition`` using the routing recorded when the donation was added."""
	count = max(box.count - 1, 0)
	if converted is not None:
		return replace(box, count=count, total_value=max(box.total_value - converted, ZERO))

	extra = dict(box.total_value_extra)
	entry = extra.get(currency_id)
	if entry is not None:
		remaining = entry.total - amount
		if remaining <= ZERO:
			del extra[currency_id]
		else:
			extra[currency_id] = replace(entry, total=remaining)
	return replace(box, count=count, total_value_extra=extra)


def empty_box(box: Box) -> Box:
	return replace(box, count=0, total_value=ZERO, total_value_extra={})
