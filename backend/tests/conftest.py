"""
Shared test fixtures for the price service tests.

Provides reusable fixtures for:
- Async database engine and session factory (in-memory SQLite)
- PriceStore bound to that database
- PipelineHealth
- Observation factory
"""

from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from sei_prices.price_feeds.base import PriceObservation
from sei_prices.services.pipeline_health import PipelineHealth
from sei_prices.services.price_store import PriceStore

# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an in-memory async SQLite engine for testing.

    StaticPool keeps one connection so every session sees the same database.
    """
    from sei_prices.models import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
def price_store(session_factory):
    """PriceStore writing to the in-memory database."""
    return PriceStore(session_maker=session_factory)


@pytest.fixture
def health():
    return PipelineHealth()


# ---------------------------------------------------------------------------
# Sample data factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_observation():
    """Build PriceObservation objects with sensible defaults."""
    def _make(
        price_id="BTC/USD",
        price=5000000000000,
        conf=1000000000,
        expo=-8,
        publish_time=None,
        source="pyth",
    ):
        return PriceObservation(
            price_id=price_id,
            price=price,
            conf=conf,
            expo=expo,
            publish_time=publish_time or datetime(2024, 1, 1, 12, 0, 0),
            source=source,
        )
    return _make
