from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

USD_CODE = "USD"
GOLD_CODE = "XAU"

# Domain gold unit is the gram; upstream gold feeds quote per troy ounce
TROY_OUNCE_TO_GRAMS = Decimal("31.1034768")


class AssetGroup(Enum):
    FIAT = "fiat"
    CRYPTO = "crypto"
    GOLD = "gold"


@dataclass(frozen=True)
class Currency:
    id: str
    code: str
    name: str
    symbol: str | None = None
    usd_value: Decimal | None = None  # USD value of 1 unit
    last_rate_update: datetime | None = None


@dataclass(frozen=True)
class CurrencyRateAttempt:
    currency_code: str
    last_attempt_at: datetime
    last_success_at: datetime | None
    usd_value: Decimal | None
    source_provider: str | None
    attempt_count: int
    found: bool


@dataclass
class RateResult:
    """Outcome of a rate acquisition; never signals failure by raising"""
    usd_rates: dict[str, Decimal] = field(default_factory=dict)
    from_cache: list[str] = field(default_factory=list)
    newly_fetched: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.usd_rates) > 0


@dataclass(frozen=True)
class RefreshResult:
    updated_count: int
    errors: list[str]


@dataclass(frozen=True)
class RateAttemptStats:
    total: int
    found: int
    not_found: int
    with_cached_value: int
