import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from domain.exceptions.box import BoxNotFoundError, InvalidAmountError, SadaqahNotFoundError
from domain.exceptions.currency import CurrencyNotFoundError, InvalidCurrencyError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
	@app.exception_handler(InvalidCurrencyError)
	async def invalid_currency_handler(request: Request, exc: InvalidCurrencyError):
		return JSONResponse(status_code=400, content={'detail': str(exc)})

	@app.exception_handler(InvalidAmountError)
	async def invalid_amount_handler(request: Request, exc: InvalidAmountError):
		return JSONResponse(status_code=400, content={'detail': str(exc)})

	@app.exception_handler(CurrencyNotFoundError)
	async def currency_not_found_handler(request: Request, exc: CurrencyNotFoundError):
		logger.warning(f'Currency not found: {exc}')
		return JSONResponse(status_code=404, content={'detail': str(exc)})

	@app.exception_handler(BoxNotFoundError)
	async def box_not_found_handler(request: Request, exc: BoxNotFoundError):
		return JSONResponse(status_code=404, content={'detail': str(exc)})

	@app.exception_handler(SadaqahNotFoundError)
	async def sadaqah_not_found_handler(request: Request, exc: SadaqahNotFoundError):
		return JSONResponse(status_code=404, content={'detail': str(exc)})

	@app.exception_handler(Exception)
	async def global_exception_handler(request: Request, exc: Exception):
		logger.error(f'Unhandled exception: {exc}', exc_info=True)
		return JSONResponse(status_code=500, content={'detail': 'Internal server error'})
