import logging
from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Annotated

import httpx
from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from application.services import (
	BackgroundTasks,
	BoxService,
	RateService,
	RateSourceChain,
	SadaqahService,
)
from config.settings import Settings, get_settings
from infrastructure.cache.redis_cache import RedisRateCache
from infrastructure.persistence.database import Database
from infrastructure.persistence.repositories import (
	BoxRepository,
	CurrencyRepository,
	RateAttemptRepository,
	SadaqahRepository,
)
from infrastructure.providers import RateProvider, build_default_providers

logger = logging.getLogger(__name__)


class AppDependencies:
	"""Container for application-wide singleton dependencies."""

	db: Database | None = None
	http_client: httpx.AsyncClient | None = None
	redis_client: Redis | None = None
	rate_cache: RedisRateCache | None = None
	providers: list[RateProvider] | None = None
	background: BackgroundTasks | None = None


deps = AppDependencies()


def init_dependencies(settings: Settings | None = None) -> None:
	"""Initialize all singleton dependencies. Called at app startup."""
	logger.info('Initializing dependencies...')
	settings = settings or get_settings()

	deps.db = Database(settings.DATABASE_URL)
	deps.http_client = httpx.AsyncClient(
		timeout=settings.PROVIDER_TIMEOUT_SECONDS, headers={'Accept': 'application/json'}
	)
	deps.providers = build_default_providers(settings, client=deps.http_client)
	deps.background = BackgroundTasks()

	if settings.REDIS_URL:
		deps.redis_client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
		deps.rate_cache = RedisRateCache(
			deps.redis_client, ttl=timedelta(seconds=settings.RATE_SNAPSHOT_TTL_SECONDS)
		)
	else:
		logger.info('REDIS_URL not set, rate snapshot cache disabled')

	logger.info(f'Dependencies initialized with {len(deps.providers)} rate providers')


async def cleanup_dependencies() -> None:
	logger.info('Cleaning up dependencies...')

	if deps.background:
		await deps.background.shutdown()
	if deps.rate_cache:
		await deps.rate_cache.close()
	if deps.http_client:
		await deps.http_client.aclose()
	if deps.db:
		await deps.db.close()

	logger.info('Cleanup complete')


async def bootstrap() -> None:
	"""Seed the default currency. Called after init_dependencies() at startup."""
	if deps.db is None:
		raise RuntimeError('Dependencies not initialized. Call init_dependencies() first.')

	async with deps.db.session() as session:
		default = await CurrencyRepository(db_session=session).get_default()
	logger.info(f'Bootstrap complete, default currency {default.code}')


def build_rate_service(
	session: AsyncSession,
	settings: Settings,
	providers: list[RateProvider],
	cache: RedisRateCache | None,
) -> RateService:
	attempts = RateAttemptRepository(
		db_session=session,
		cooldown=timedelta(seconds=settings.RATE_ATTEMPT_COOLDOWN_SECONDS),
		max_cache_age=timedelta(seconds=settings.RATE_CACHE_MAX_AGE_SECONDS),
	)
	currencies = CurrencyRepository(db_session=session)
	return RateService(
		chain=RateSourceChain(providers, attempts, currencies),
		attempts=attempts,
		currencies=currencies,
		cache=cache,
		cooldown=attempts.cooldown,
		max_cache_age=attempts.max_cache_age,
	)


async def refresh_rates_job(codes: list[str]) -> None:
	"""Background refresh in its own session, detached from the request that asked for it."""
	if deps.db is None or deps.providers is None:
		raise RuntimeError('Dependencies not initialized')

	async with deps.db.session() as session:
		service = build_rate_service(session, get_settings(), deps.providers, deps.rate_cache)
		result = await service.refresh_currency_rates(codes)
	logger.info(
		f'Background refresh for {codes}: fetched {result.newly_fetched}, '
		f'missing {result.not_found}, {len(result.errors)} errors'
	)


def schedule_rate_refresh(codes: list[str]) -> None:
	if deps.background is None:
		raise RuntimeError('Background tasks not initialized')
	deps.background.spawn(refresh_rates_job(codes), name=f'rate-refresh:{",".join(codes)}')


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
	if deps.db is None:
		raise RuntimeError('Database is not initialized')

	async with deps.db.session() as session:
		yield session


def get_rate_cache() -> RedisRateCache | None:
	return deps.rate_cache


def get_providers() -> list[RateProvider]:
	if deps.providers is None:
		raise RuntimeError('Providers not initialized')
	return deps.providers


async def get_currency_repository(
	session: Annotated[AsyncSession, Depends(get_db_session)],
) -> CurrencyRepository:
	return CurrencyRepository(db_session=session)


async def get_rate_service(
	session: Annotated[AsyncSession, Depends(get_db_session)],
	settings: Annotated[Settings, Depends(get_settings)],
	providers: Annotated[list[RateProvider], Depends(get_providers)],
	cache: Annotated[RedisRateCache | None, Depends(get_rate_cache)],
) -> RateService:
	return build_rate_service(session, settings, providers, cache)


async def get_box_service(
	session: Annotated[AsyncSession, Depends(get_db_session)],
) -> BoxService:
	return BoxService(
		boxes=BoxRepository(session),
		sadaqahs=SadaqahRepository(session),
		currencies=CurrencyRepository(session),
	)


async def get_sadaqah_service(
	session: Annotated[AsyncSession, Depends(get_db_session)],
	settings: Annotated[Settings, Depends(get_settings)],
	rate_service: Annotated[RateService, Depends(get_rate_service)],
) -> SadaqahService:
	return SadaqahService(
		boxes=BoxRepository(session),
		sadaqahs=SadaqahRepository(session),
		currencies=CurrencyRepository(session),
		rate_service=rate_service,
		schedule_refresh=schedule_rate_refresh,
		max_rate_age=timedelta(seconds=settings.RATE_CACHE_MAX_AGE_SECONDS),
	)
