from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import get_currency_repository, get_rate_service
from api.schemas import (
	CanFetchResponse,
	CurrenciesResponse,
	CurrencyResponse,
	RateStatsResponse,
	RatesResponse,
	RefreshResponse,
)
from application.services import RateService
from infrastructure.persistence.repositories import CurrencyRepository

router = APIRouter(prefix='/api', tags=['currency'])


@router.get(
	'/currencies',
	response_model=CurrenciesResponse,
	status_code=status.HTTP_200_OK,
	summary='List currencies with their USD values',
)
async def list_currencies(
	repository: Annotated[CurrencyRepository, Depends(get_currency_repository)],
) -> CurrenciesResponse:
	currencies = await repository.list_all()
	return CurrenciesResponse(currencies=[CurrencyResponse.from_domain(c) for c in currencies])


@router.get(
	'/rates',
	response_model=RatesResponse,
	status_code=status.HTTP_200_OK,
	summary='USD rates for the given codes, best effort',
)
async def get_rates(
	codes: Annotated[str, Query(min_length=1, description='Comma separated codes, e.g. EUR,BTC')],
	service: Annotated[RateService, Depends(get_rate_service)],
) -> RatesResponse:
	result = await service.fetch_rates_for(codes.split(','))
	return RatesResponse.from_domain(result)


@router.get(
	'/rates/stats',
	response_model=RateStatsResponse,
	status_code=status.HTTP_200_OK,
	summary='Rate attempt statistics',
)
async def get_rate_stats(
	service: Annotated[RateService, Depends(get_rate_service)],
) -> RateStatsResponse:
	return RateStatsResponse.from_domain(await service.get_stats())


@router.get(
	'/rates/{code}/can-fetch',
	response_model=CanFetchResponse,
	status_code=status.HTTP_200_OK,
	summary='Whether a live rate fetch would be attempted',
)
async def can_fetch_rate(
	code: Annotated[str, Path(min_length=2, max_length=10)],
	service: Annotated[RateService, Depends(get_rate_service)],
) -> CanFetchResponse:
	code = code.upper()
	return CanFetchResponse(code=code, can_fetch=await service.can_fetch_rate_for_currency(code))


@router.post(
	'/rates/refresh',
	response_model=RefreshResponse,
	status_code=status.HTTP_200_OK,
	summary='Refresh the USD value of every currency',
)
async def refresh_rates(
	service: Annotated[RateService, Depends(get_rate_service)],
) -> RefreshResponse:
	return RefreshResponse.from_domain(await service.update_all_currency_values())


@router.post(
	'/rates/force-refresh',
	response_model=RefreshResponse,
	status_code=status.HTTP_200_OK,
	summary='Clear cooldown and cache state, then refresh every currency',
)
async def force_refresh_rates(
	service: Annotated[RateService, Depends(get_rate_service)],
) -> RefreshResponse:
	return RefreshResponse.from_domain(await service.force_refresh())
