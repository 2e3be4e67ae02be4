from .requests import AddSadaqahRequest, CreateBoxRequest
from .responses import (
	AddSadaqahResponse,
	BoxResponse,
	CanFetchResponse,
	CollectionResponse,
	CurrenciesResponse,
	CurrencyResponse,
	RateStatsResponse,
	RatesResponse,
	RefreshResponse,
	SadaqahResponse,
)

__all__ = [
	'AddSadaqahRequest',
	'AddSadaqahResponse',
	'BoxResponse',
	'CanFetchResponse',
	'CollectionResponse',
	'CreateBoxRequest',
	'CurrenciesResponse',
	'CurrencyResponse',
	'RateStatsResponse',
	'RatesResponse',
	'RefreshResponse',
	'SadaqahResponse',
]
