# nosec B101


from decimal import Decimal

import pytest

from application.services.conversion_service import (
    apply_addition,
    apply_removal,
    calculate_gold_grams,
    convert,
    empty_box,
)
from domain.models.box import Box, ExtraValueEntry
from domain.models.currency import Currency

USD = Currency(id='cur_usd', code='USD', name='US Dollar', usd_value=Decimal('1'))
EUR = Currency(id='cur_eur', code='EUR', name='Euro', usd_value=Decimal('1.1'))
GBP = Currency(id='cur_gbp', code='GBP', name='Pound', usd_value=Decimal('1.27'))
BTC = Currency(id='cur_btc', code='BTC', name='Bitcoin', usd_value=Decimal('65000.123456789'))
XYZ = Currency(id='cur_xyz', code='XYZ', name='Unknown', usd_value=None)


def make_box(**overrides) -> Box:
    fields = dict(id='box_1', name='Box', base_currency_id=USD.id, count=0, total_value=Decimal('0'))
    fields.update(overrides)
    return Box(**fields)


@pytest.mark.parametrize('currency', [USD, EUR, BTC, XYZ])
@pytest.mark.parametrize('amount', [Decimal('0'), Decimal('10'), Decimal('0.333333333'), Decimal('123456789.987654321')])
def test_same_currency_conversion_returns_amount_exactly(currency, amount):
    assert convert(amount, currency, currency) is amount


def test_same_currency_without_rate_is_still_resolvable():
    assert convert(Decimal('5'), XYZ, XYZ) == Decimal('5')


def test_convert_bridges_through_usd():
    assert convert(Decimal('10'), EUR, USD) == Decimal('11')
    assert convert(Decimal('11'), USD, EUR) == Decimal('10')


@pytest.mark.parametrize('a, b', [(EUR, GBP), (GBP, BTC), (BTC, EUR), (USD, BTC)])
def test_round_trip_conversion_is_close_to_original(a, b):
    x = Decimal('1234.5678')
    back = convert(convert(x, a, b), b, a)
    assert abs(back - x) < Decimal('1e-15')


def test_missing_usd_value_is_unresolvable_not_zero():
    assert convert(Decimal('10'), XYZ, USD) is None
    assert convert(Decimal('10'), USD, XYZ) is None


def test_addition_of_converted_amount_updates_total_only():
    box = make_box()

    updated = apply_addition(box, Decimal('10'), EUR, Decimal('11'))

    assert updated.total_value == Decimal('11')
    assert updated.count == 1
    assert updated.total_value_extra == {}
    assert box.total_value == Decimal('0')


def test_addition_of_unconvertible_amount_goes_to_extra_bucket():
    box = make_box(total_value=Decimal('5'))

    updated = apply_addition(box, Decimal('10'), EUR, None)
    updated = apply_addition(updated, Decimal('2.5'), EUR, None)

    assert updated.total_value == Decimal('5')
    assert updated.count == 2
    assert updated.total_value_extra[EUR.id] == ExtraValueEntry(total=Decimal('12.5'), code='EUR', name='Euro')


def test_removal_from_extra_bucket_decrements_then_removes_entry():
    box = make_box(
        count=2,
        total_value_extra={EUR.id: ExtraValueEntry(total=Decimal('12.5'), code='EUR', name='Euro')},
    )

    updated = apply_removal(box, Decimal('10'), EUR.id, None)
    assert updated.total_value_extra[EUR.id].total == Decimal('2.5')
    assert updated.count == 1

    updated = apply_removal(updated, Decimal('2.5'), EUR.id, None)
    assert EUR.id not in updated.total_value_extra
    assert updated.count == 0


def test_removal_of_converted_amount_is_floored_at_zero():
    box = make_box(count=1, total_value=Decimal('5'))

    updated = apply_removal(box, Decimal('10'), EUR.id, Decimal('11'))

    assert updated.total_value == Decimal('0')
    assert updated.count == 0


def test_removal_uses_recorded_routing_not_current_rates():
    box = make_box(
        count=1,
        total_value=Decimal('3'),
        total_value_extra={EUR.id: ExtraValueEntry(total=Decimal('10'), code='EUR', name='Euro')},
    )

    updated = apply_removal(box, Decimal('10'), EUR.id, None)

    assert updated.total_value == Decimal('3')
    assert updated.total_value_extra == {}


def test_empty_box_resets_totals():
    box = make_box(
        count=3,
        total_value=Decimal('30'),
        total_value_extra={EUR.id: ExtraValueEntry(total=Decimal('10'), code='EUR', name='Euro')},
    )

    emptied = empty_box(box)

    assert emptied.count == 0
    assert emptied.total_value == Decimal('0')
    assert emptied.total_value_extra == {}
    assert emptied.id == box.id


def test_calculate_gold_grams_goes_through_usd():
    gold_per_gram = Decimal('80')

    assert calculate_gold_grams(Decimal('160'), Decimal('1'), gold_per_gram) == Decimal('2')
    # 80 EUR at 1.1 USD is 88 USD
    assert calculate_gold_grams(Decimal('80'), Decimal('1.1'), gold_per_gram) == Decimal('1.1')
    assert calculate_gold_grams(Decimal('0'), Decimal('1'), gold_per_gram) == Decimal('0')


@pytest.mark.parametrize(
    'currency_usd, gold',
    [(None, Decimal('80')), (Decimal('1'), None), (Decimal('1'), Decimal('0')), (Decimal('-1'), Decimal('80'))],
)
def test_calculate_gold_grams_is_zero_without_usable_rates(currency_usd, gold):
    assert calculate_gold_grams(Decimal('2'), currency_usd, gold) == Decimal('0')
