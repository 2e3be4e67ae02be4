# nosec B101


from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from application.services.rate_source_chain import RateSourceChain
from domain.exceptions.currency import ProviderError
from domain.models.currency import AssetGroup
from infrastructure.persistence.repositories.currency import CurrencyRepository
from infrastructure.persistence.repositories.rate_attempt import RateAttemptRepository
from tests.conftest import make_provider


@pytest.fixture
def attempts():
    return AsyncMock(spec=RateAttemptRepository)


@pytest.fixture
def currencies():
    repo = AsyncMock(spec=CurrencyRepository)
    repo.update_rates.return_value = []
    return repo


@pytest.mark.asyncio
async def test_first_provider_answers_and_later_ones_are_not_called(attempts, currencies, clock):
    first = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1', 'GBP': '1.27'})
    second = make_provider('p2', AssetGroup.FIAT, {'EUR': '1.2'})
    crypto = make_provider('c1', AssetGroup.CRYPTO, {'BTC': '65000'})

    chain = RateSourceChain([first, second, crypto], attempts, currencies, clock=clock)
    result = await chain.fetch(['eur'])

    assert result.rates == {'EUR': Decimal('1.1')}
    assert result.errors == []
    second.fetch.assert_not_called()
    crypto.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_successful_call_writes_through_every_returned_code(attempts, currencies, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1', 'GBP': '1.27', 'JPY': '0.0067'})

    chain = RateSourceChain([provider], attempts, currencies, clock=clock)
    result = await chain.fetch(['EUR'])

    expected = {'EUR': Decimal('1.1'), 'GBP': Decimal('1.27'), 'JPY': Decimal('0.0067')}
    attempts.record_successes.assert_awaited_once_with(expected, 'p1')
    currencies.update_rates.assert_awaited_once_with(expected, clock.now)
    assert result.written == {'EUR', 'GBP', 'JPY'}


@pytest.mark.asyncio
async def test_failing_provider_is_recorded_and_next_one_tried(attempts, currencies, clock):
    failing = make_provider('p1', AssetGroup.FIAT, error=ProviderError('HTTP 503: down'))
    working = make_provider('p2', AssetGroup.FIAT, {'EUR': '1.1'})

    chain = RateSourceChain([failing, working], attempts, currencies, clock=clock)
    result = await chain.fetch(['EUR'])

    assert result.rates == {'EUR': Decimal('1.1')}
    assert result.errors == ['p1: HTTP 503: down']


@pytest.mark.asyncio
async def test_unexpected_exception_does_not_abort_chain(attempts, currencies, clock):
    broken = make_provider('p1', AssetGroup.FIAT, error=KeyError('usd'))
    working = make_provider('p2', AssetGroup.FIAT, {'EUR': '1.1'})

    chain = RateSourceChain([broken, working], attempts, currencies, clock=clock)
    result = await chain.fetch(['EUR'])

    assert result.rates == {'EUR': Decimal('1.1')}
    assert len(result.errors) == 1
    assert result.errors[0].startswith('p1: ')


@pytest.mark.asyncio
async def test_providers_tried_sequentially_until_all_codes_resolved(attempts, currencies, clock):
    first = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    second = make_provider('p2', AssetGroup.FIAT, {'EUR': '1.2', 'NGN': '0.0007'})
    third = make_provider('p3', AssetGroup.FIAT, {'ZAR': '0.05'})

    chain = RateSourceChain([first, second, third], attempts, currencies, clock=clock)
    result = await chain.fetch(['EUR', 'NGN'])

    assert result.rates == {'EUR': Decimal('1.1'), 'NGN': Decimal('0.0007')}
    third.fetch.assert_not_called()
    # EUR from the second table is not written over the first provider's value
    second_write = attempts.record_successes.await_args_list[1]
    assert second_write.args == ({'NGN': Decimal('0.0007')}, 'p2')


@pytest.mark.asyncio
async def test_crypto_group_used_when_fiat_cannot_resolve(attempts, currencies, clock):
    fiat = make_provider('f1', AssetGroup.FIAT, {'EUR': '1.1'})
    crypto = make_provider('c1', AssetGroup.CRYPTO, {'BTC': '65000'})

    chain = RateSourceChain([fiat, crypto], attempts, currencies, clock=clock)
    result = await chain.fetch(['EUR', 'BTC'])

    assert result.rates == {'EUR': Decimal('1.1'), 'BTC': Decimal('65000')}
    fiat.fetch.assert_awaited_once()
    crypto.fetch.assert_awaited_once()


@pytest.mark.asyncio
async def test_gold_served_only_by_gold_group(attempts, currencies, clock):
    fiat = make_provider('f1', AssetGroup.FIAT, {'EUR': '1.1'})
    gold = make_provider('g1', AssetGroup.GOLD, {'XAU': '80'})

    chain = RateSourceChain([fiat, gold], attempts, currencies, clock=clock)
    result = await chain.fetch(['XAU'])

    assert result.rates == {'XAU': Decimal('80')}
    fiat.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_all_providers_of_group_failing_is_reported(attempts, currencies, clock):
    gold = [
        make_provider('goldapi', AssetGroup.GOLD, error=ProviderError('No API token')),
        make_provider('metals.live', AssetGroup.GOLD, error=ProviderError('Request failed: ConnectTimeout')),
        make_provider('goldprice.org', AssetGroup.GOLD, error=ProviderError('HTTP 403: forbidden')),
    ]

    chain = RateSourceChain(gold, attempts, currencies, clock=clock)
    result = await chain.fetch(['XAU'])

    assert result.rates == {}
    assert result.errors == [
        'goldapi: No API token',
        'metals.live: Request failed: ConnectTimeout',
        'goldprice.org: HTTP 403: forbidden',
        'All gold providers failed',
    ]
    attempts.record_successes.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_code_exhausts_fiat_and_crypto(attempts, currencies, clock):
    fiat = make_provider('f1', AssetGroup.FIAT, {'EUR': '1.1'})
    crypto = make_provider('c1', AssetGroup.CRYPTO, error=ProviderError('HTTP 429: slow down'))

    chain = RateSourceChain([fiat, crypto], attempts, currencies, clock=clock)
    result = await chain.fetch(['QQQ'])

    assert result.rates == {}
    assert result.errors == ['c1: HTTP 429: slow down', 'All crypto providers failed']
    # the fiat table was still cached opportunistically
    assert result.written == {'EUR'}
