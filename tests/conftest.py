"""
Test configuration and fixtures for StockLeague

Unit tests run against the in-memory storage backend. Integration tests
use an in-memory SQLite database through the same async SQLAlchemy stack
as production:

    pytest tests/
"""

import pytest
from decimal import Decimal
from typing import AsyncGenerator

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.config import settings
from app.db.base import Base
from app.main import create_app
from app.services.container import build_services
from app.services.market_clock import MarketClock
from app.storage.memory import MemoryStorage
from app.storage.sql import SqlStorage
from tests.fixtures.market import FakePriceSource, FixedClock, RecordingBroadcaster, ist


@pytest.fixture
def clock() -> MarketClock:
    return MarketClock()


@pytest.fixture
def now() -> FixedClock:
    """Wednesday 2024-01-10 11:00 exchange time (market open)."""
    return FixedClock(ist(2024, 1, 10, 11, 0))


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage(new_user_balance=Decimal("100"))


@pytest.fixture
def price_source() -> FakePriceSource:
    return FakePriceSource({"RELIANCE": 2500.0, "TCS": 3500.0, "INFY": 1500.0})


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def sql_storage(session_factory) -> SqlStorage:
    return SqlStorage(session_factory)


@pytest.fixture
def services(storage, price_source, clock, now):
    return build_services(settings, storage, price_source=price_source, clock=clock, now_fn=now)


@pytest.fixture
def client(services):
    """HTTP client over an app wired to in-memory services."""
    with TestClient(create_app(services)) as test_client:
        yield test_client
