from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from domain.models.currency import AssetGroup
from infrastructure.persistence.database import Database


class FakeClock:
    """Settable replacement for utils.time.utc_now."""

    def __init__(self, now: datetime = datetime(2026, 1, 15, 12, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_provider(name: str, group: AssetGroup, rates: dict | None = None, error: Exception | None = None):
    provider = Mock()
    provider.name = name
    provider.group = group
    if error is not None:
        provider.fetch = AsyncMock(side_effect=error)
    else:
        provider.fetch = AsyncMock(return_value={k: Decimal(str(v)) for k, v in (rates or {}).items()})
    return provider


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def database():
    db = Database(
        'sqlite+aiosqlite:///:memory:',
        poolclass=StaticPool,
        connect_args={'check_same_thread': False},
    )
    await db.create_tables()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def session(database):
    async with database.session_factory() as session:
        yield session
