"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are portable (amounts
are decimal strings, hashes are blobs), so the real tables are created
directly.  Each test gets a fresh engine and schema.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.domain.ledger import LedgerStateMachine
from src.infrastructure import models  # noqa: F401  (registers tables)
from src.infrastructure.database import Base
from src.infrastructure.memory import InMemoryLedgerStore

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

ADMIN = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
DRIVER = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
OTHER_DRIVER = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"
STRANGER = "0x90f79bf6eb2c4f870365e785982e1f101e93b906"

TRIP_HASH = "0x" + "ab" * 32

BASE_FARE, PER_KM_FARE, PER_MINUTE_FARE = 700, 500, 80


class FakeClock:
    """Deterministic unix-seconds clock; advances one second per reading."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def ledger(clock: FakeClock) -> LedgerStateMachine:
    """In-memory ledger, initialized with the standard rates and ADMIN."""
    machine = LedgerStateMachine(InMemoryLedgerStore(), clock=clock)
    await machine.initialize(BASE_FARE, PER_KM_FARE, PER_MINUTE_FARE, ADMIN)
    return machine


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables on a fresh SQLite engine, yield a session factory, then drop."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker,
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
