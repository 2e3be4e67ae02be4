from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateBoxRequest(BaseModel):
	name: str = Field(..., min_length=1, max_length=100)
	description: str | None = Field(None, max_length=500)
	base_currency_code: str = Field('USD', min_length=3, max_length=10)

	@field_validator('base_currency_code')
	@classmethod
	def uppercase_currency(cls, v: str):
		return v.strip().upper()

	model_config = ConfigDict(
		json_schema_extra={
			'example': {'name': 'Ramadan box', 'base_currency_code': 'EUR'}
		}
	)


class AddSadaqahRequest(BaseModel):
	value: Decimal = Field(..., gt=0)
	currency_id: str | None = Field(None, description='Existing currency id')
	currency_code: str | None = Field(
		None, min_length=2, max_length=10, description='Currency code, created when unknown'
	)

	@field_validator('currency_code')
	@classmethod
	def uppercase_currency(cls, v: str | None):
		return v.strip().upper() if v else v

	model_config = ConfigDict(
		json_schema_extra={'example': {'value': 10, 'currency_code': 'EUR'}}
	)
