"""
Shared fixtures: an in-memory async SQLite database per test, a frozen clock
and a small set of transport reference data.
"""

from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.clock import FrozenClock
from app.db.init_db import init_db
from app.models import Line, Stop, VehicleType

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(name="engine")
async def engine_fixture():
    """Create tables in a fresh in-memory database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture(name="db")
async def db_fixture(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture():
    return FrozenClock(datetime(2025, 3, 1, 8, 0, 0))


@pytest_asyncio.fixture(name="transport")
async def transport_fixture(db):
    """Two lines and three stops around Krakow's old town"""
    db.add_all([
        Line(id="L1", number="4", type=VehicleType.TRAM),
        Line(id="L2", number="179", type=VehicleType.BUS),
        Stop(id="S1", name="Teatr Bagatela", latitude=50.0637, longitude=19.9327, type=VehicleType.TRAM),
        Stop(id="S2", name="Dworzec Glowny", latitude=50.0677, longitude=19.9447, type=VehicleType.TRAM),
        Stop(id="S3", name="Nowa Huta", latitude=50.0720, longitude=20.0370, type=VehicleType.BUS),
    ])
    await db.commit()
