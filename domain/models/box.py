from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class ExtraValueEntry:
    """Amount parked in a box because it could not be converted to the base currency"""
    total: Decimal
    code: str
    name: str


@dataclass(frozen=True)
class Box:
    id: str
    name: str
    base_currency_id: str
    count: int
    total_value: Decimal
    total_value_extra: dict[str, ExtraValueEntry] = field(default_factory=dict)
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Sadaqah:
    id: str
    box_id: str
    value: Decimal
    currency_id: str
    # Amount added to the box total at add time; None when parked in total_value_extra
    converted_value: Decimal | None
    created_at: datetime


@dataclass(frozen=True)
class Collection:
    id: str
    box_id: str
    currency_id: str
    emptied_at: datetime
    sadaqah_count: int
    total_value: Decimal
    total_value_extra: dict[str, ExtraValueEntry] = field(default_factory=dict)
