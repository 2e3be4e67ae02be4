# nosec B101


from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from application.services.rate_service import RateService
from application.services.rate_source_chain import RateSourceChain
from domain.exceptions.currency import ProviderError
from domain.models.currency import AssetGroup
from infrastructure.cache.redis_cache import RedisRateCache
from infrastructure.persistence.repositories.currency import CurrencyRepository
from infrastructure.persistence.repositories.rate_attempt import RateAttemptRepository
from tests.conftest import make_provider


def build_service(session, clock, providers, cache=None) -> RateService:
    attempts = RateAttemptRepository(db_session=session, clock=clock)
    currencies = CurrencyRepository(db_session=session)
    return RateService(
        chain=RateSourceChain(providers, attempts, currencies, clock=clock),
        attempts=attempts,
        currencies=currencies,
        cache=cache,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_usd_resolves_to_one_without_provider_call(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    service = build_service(session, clock, [provider])

    result = await service.fetch_rates_for(['usd', 'USD'])

    assert result.usd_rates == {'USD': Decimal('1')}
    assert result.from_cache == ['USD']
    assert result.not_found == []
    assert result.success is True
    provider.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_live_fetch_then_served_from_cache(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1', 'GBP': '1.27'})
    service = build_service(session, clock, [provider])

    first = await service.fetch_rates_for(['EUR'])
    assert first.usd_rates == {'EUR': Decimal('1.1')}
    assert first.newly_fetched == ['EUR']

    second = await service.fetch_rates_for(['EUR', 'GBP'])
    assert second.usd_rates == {'EUR': Decimal('1.1'), 'GBP': Decimal('1.27')}
    assert second.from_cache == ['EUR', 'GBP']
    assert second.newly_fetched == []
    provider.fetch.assert_awaited_once()


@pytest.mark.asyncio
async def test_unresolved_code_recorded_as_not_found_then_in_cooldown(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    service = build_service(session, clock, [provider])

    first = await service.fetch_rates_for(['QQQ'])
    assert first.not_found == ['QQQ']
    assert first.success is False
    attempt = await service.attempts.get('QQQ')
    assert attempt.found is False

    second = await service.fetch_rates_for(['QQQ'])
    assert second.not_found == ['QQQ']
    assert provider.fetch.await_count == 1

    clock.advance(hours=1)
    await service.fetch_rates_for(['QQQ'])
    assert provider.fetch.await_count == 2


@pytest.mark.asyncio
async def test_provider_failures_never_raise(session, clock):
    providers = [
        make_provider('f1', AssetGroup.FIAT, error=ProviderError('HTTP 500: boom')),
        make_provider('c1', AssetGroup.CRYPTO, error=ProviderError('Request failed: ConnectTimeout')),
    ]
    service = build_service(session, clock, providers)

    result = await service.fetch_rates_for(['EUR', 'USD'])

    assert result.usd_rates == {'USD': Decimal('1')}
    assert result.not_found == ['EUR']
    assert 'f1: HTTP 500: boom' in result.errors
    assert 'All fiat providers failed' in result.errors
    assert 'All crypto providers failed' in result.errors


@pytest.mark.asyncio
async def test_stale_cache_triggers_live_fetch_after_cooldown(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    service = build_service(session, clock, [provider])

    await service.fetch_rates_for(['EUR'])
    clock.advance(hours=2, minutes=1)
    provider.fetch.return_value = {'EUR': Decimal('1.2')}

    result = await service.fetch_rates_for(['EUR'])

    assert result.newly_fetched == ['EUR']
    assert result.usd_rates['EUR'] == Decimal('1.2')


@pytest.mark.asyncio
async def test_can_attempt_and_can_fetch_rate_for_currency(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    service = build_service(session, clock, [provider])
    await service.currencies.create('EUR', 'Euro')
    await service.currencies.create('XYZ', 'Unknown')

    assert await service.can_attempt('USD') is False
    assert await service.can_attempt('eur') is True
    assert await service.can_fetch_rate_for_currency('EUR') is True

    await service.refresh_currency_rates(['EUR', 'XYZ'])

    # EUR has a stored rate now, XYZ is in cooldown
    assert await service.can_fetch_rate_for_currency('EUR') is False
    assert await service.can_fetch_rate_for_currency('XYZ') is False
    assert await service.can_fetch_rate_for_currency('USD') is False


@pytest.mark.asyncio
async def test_refresh_currency_rates_writes_cached_values_to_currencies(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    service = build_service(session, clock, [provider])

    await service.fetch_rates_for(['EUR'])
    eur = await service.currencies.create('EUR', 'Euro')
    assert eur.usd_value is None

    result = await service.refresh_currency_rates(['EUR'])

    assert result.from_cache == ['EUR']
    eur = await service.currencies.get_by_code('EUR')
    assert eur.usd_value == Decimal('1.1')
    assert eur.last_rate_update == clock.now


@pytest.mark.asyncio
async def test_update_all_currency_values(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1', 'GBP': '1.27'})
    service = build_service(session, clock, [provider])
    await service.currencies.get_default()
    await service.currencies.create('EUR', 'Euro')
    await service.currencies.create('GBP', 'Pound')
    await service.currencies.create('QQQ', 'Nothing')

    result = await service.update_all_currency_values()

    assert result.updated_count == 3
    assert (await service.currencies.get_by_code('GBP')).usd_value == Decimal('1.27')
    assert (await service.currencies.get_by_code('QQQ')).usd_value is None


@pytest.mark.asyncio
async def test_force_refresh_clears_cooldown_and_refetches(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    service = build_service(session, clock, [provider])
    await service.currencies.create('EUR', 'Euro')
    await service.currencies.create('QQQ', 'Nothing')

    await service.update_all_currency_values()
    assert provider.fetch.await_count == 1
    assert await service.can_attempt('QQQ') is False

    result = await service.force_refresh()

    assert provider.fetch.await_count == 2
    assert result.updated_count == 1
    assert (await service.currencies.get_by_code('EUR')).last_rate_update == clock.now


@pytest.mark.asyncio
async def test_get_usd_value_by_code(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    service = build_service(session, clock, [provider])

    assert await service.get_usd_value_by_code('usd') == Decimal('1')
    assert await service.get_usd_value_by_code('EUR') == Decimal('1.1')
    assert await service.get_usd_value_by_code('QQQ') is None


@pytest.mark.asyncio
async def test_get_stats(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1', 'GBP': '1.27'})
    service = build_service(session, clock, [provider])

    await service.fetch_rates_for(['EUR', 'QQQ'])
    stats = await service.get_stats()

    assert stats.total == 3
    assert stats.found == 2
    assert stats.not_found == 1


@pytest.mark.asyncio
async def test_redis_snapshot_used_and_invalidated(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    cache = AsyncMock(spec=RedisRateCache)
    cache.get_cached_rates.return_value = {'GBP': Decimal('1.27')}
    service = build_service(session, clock, [provider], cache=cache)

    result = await service.fetch_rates_for(['GBP'])
    assert result.from_cache == ['GBP']
    provider.fetch.assert_not_called()
    cache.invalidate.assert_not_called()

    result = await service.fetch_rates_for(['EUR'])
    assert result.newly_fetched == ['EUR']
    cache.invalidate.assert_awaited_once()


@pytest.mark.asyncio
async def test_redis_miss_falls_back_to_store_and_fills_snapshot(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.1'})
    cache = AsyncMock(spec=RedisRateCache)
    cache.get_cached_rates.return_value = None
    service = build_service(session, clock, [provider], cache=cache)
    await service.attempts.record_success('EUR', Decimal('1.1'), 'p1')

    result = await service.fetch_rates_for(['EUR'])

    assert result.from_cache == ['EUR']
    cache.set_cached_rates.assert_awaited_once()
    assert cache.set_cached_rates.await_args.args[0] == {'EUR': Decimal('1.1')}


@pytest.mark.asyncio
async def test_snapshot_missing_requested_code_is_refreshed_from_store(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.2'})
    cache = AsyncMock(spec=RedisRateCache)
    cache.get_cached_rates.return_value = {'GBP': Decimal('1.27')}
    service = build_service(session, clock, [provider], cache=cache)
    # written by another request after the snapshot was taken
    await service.attempts.record_success('EUR', Decimal('1.1'), 'p1')

    result = await service.fetch_rates_for(['EUR'])

    assert result.from_cache == ['EUR']
    assert result.usd_rates == {'EUR': Decimal('1.1')}
    provider.fetch.assert_not_called()
    assert cache.set_cached_rates.await_args.args[0] == {'EUR': Decimal('1.1')}


@pytest.mark.asyncio
async def test_get_usd_value_by_code_uses_attempt_cache_before_live_fetch(session, clock):
    provider = make_provider('p1', AssetGroup.FIAT, {'EUR': '1.2'})
    service = build_service(session, clock, [provider])
    await service.currencies.create('EUR', 'Euro')
    await service.attempts.record_success('EUR', Decimal('1.1'), 'p1')

    assert await service.get_usd_value_by_code('eur') == Decimal('1.1')
    provider.fetch.assert_not_called()

    clock.advance(hours=2, minutes=1)
    assert await service.get_usd_value_by_code('EUR') == Decimal('1.2')
    provider.fetch.assert_awaited_once()
