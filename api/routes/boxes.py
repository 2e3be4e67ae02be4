from typing import Annotated

from fastapi import APIRouter, Depends, status

from api.dependencies import get_box_service, get_sadaqah_service
from api.schemas import (
	AddSadaqahRequest,
	AddSadaqahResponse,
	BoxResponse,
	CollectionResponse,
	CreateBoxRequest,
	SadaqahResponse,
)
from application.services import BoxService, SadaqahService

router = APIRouter(prefix='/api/boxes', tags=['boxes'])


@router.post(
	'',
	response_model=BoxResponse,
	status_code=status.HTTP_201_CREATED,
	summary='Create a box',
)
async def create_box(
	request: CreateBoxRequest,
	service: Annotated[BoxService, Depends(get_box_service)],
) -> BoxResponse:
	box = await service.create_box(
		name=request.name,
		base_currency_code=request.base_currency_code,
		description=request.description,
	)
	return BoxResponse.from_domain(box)


@router.get('/{box_id}', response_model=BoxResponse, summary='Get a box with its totals')
async def get_box(
	box_id: str,
	service: Annotated[BoxService, Depends(get_box_service)],
) -> BoxResponse:
	box = await service.get_box(box_id)
	return BoxResponse.from_domain(box, gold_grams=await service.get_gold_grams(box))


@router.post(
	'/{box_id}/collect',
	response_model=CollectionResponse,
	status_code=status.HTTP_200_OK,
	summary='Empty a box into a collection record',
)
async def collect_box(
	box_id: str,
	service: Annotated[BoxService, Depends(get_box_service)],
) -> CollectionResponse:
	return CollectionResponse.from_domain(await service.collect_box(box_id))


@router.get(
	'/{box_id}/sadaqahs',
	response_model=list[SadaqahResponse],
	summary='List the sadaqahs of a box',
)
async def list_sadaqahs(
	box_id: str,
	service: Annotated[SadaqahService, Depends(get_sadaqah_service)],
) -> list[SadaqahResponse]:
	return [SadaqahResponse.from_domain(s) for s in await service.list_sadaqahs(box_id)]


@router.post(
	'/{box_id}/sadaqahs',
	response_model=AddSadaqahResponse,
	status_code=status.HTTP_201_CREATED,
	summary='Add a sadaqah to a box',
)
async def add_sadaqah(
	box_id: str,
	request: AddSadaqahRequest,
	service: Annotated[SadaqahService, Depends(get_sadaqah_service)],
) -> AddSadaqahResponse:
	sadaqah, box = await service.add_sadaqah(
		box_id,
		request.value,
		currency_id=request.currency_id,
		currency_code=request.currency_code,
	)
	return AddSadaqahResponse(
		sadaqah=SadaqahResponse.from_domain(sadaqah), box=BoxResponse.from_domain(box)
	)


@router.delete(
	'/{box_id}/sadaqahs/{sadaqah_id}',
	response_model=BoxResponse,
	summary='Delete a sadaqah and return the updated box',
)
async def delete_sadaqah(
	box_id: str,
	sadaqah_id: str,
	service: Annotated[SadaqahService, Depends(get_sadaqah_service)],
) -> BoxResponse:
	return BoxResponse.from_domain(await service.delete_sadaqah(box_id, sadaqah_id))
