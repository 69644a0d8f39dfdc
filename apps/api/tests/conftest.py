"""Shared test fixtures for the AudiFi Dividends API test suite."""

import os

# Must be set before app.core.config is imported anywhere
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REVENUE_SWEEP_ENABLED", "false")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("APP_DEBUG", "false")

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.master_ipo import MasterIpo  # noqa: E402
from app.modules.master_ipos.ledger import ShareLedger  # noqa: E402
from app.modules.master_ipos.schemas import MasterIpoCreate  # noqa: E402
from app.modules.master_ipos.service import MasterIpoService  # noqa: E402

ARTIST_WALLET = "0xartist000000000000000000000000000000000a"
WALLET_A = "0xaaaa000000000000000000000000000000000001"
WALLET_B = "0xbbbb000000000000000000000000000000000002"
WALLET_C = "0xcccc000000000000000000000000000000000003"
WALLET_D = "0xdddd000000000000000000000000000000000004"
WALLET_E = "0xeeee000000000000000000000000000000000005"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory SQLite database per test; StaticPool keeps one shared connection."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient]:
    app.dependency_overrides[get_db] = lambda: db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def ledger(db: AsyncSession) -> ShareLedger:
    return ShareLedger(db)


# ── Sample data fixtures ──────────────────────────────────────────────────


def ipo_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "title": "Midnight Tapes (Master)",
        "artist_wallet": ARTIST_WALLET,
        "total_supply": 100,
        "price_per_unit": Decimal("0.05"),
        "currency": "USD",
        "holder_revenue_share_percent": 40,
        "artist_retained_percent": 50,
        "collaborator_shares": [{"collaborator_id": "producer-1", "percent": 10}],
    }
    payload.update(overrides)
    return payload


MakeIpo = Callable[..., Awaitable[MasterIpo]]


@pytest.fixture
def make_ipo(db: AsyncSession) -> MakeIpo:
    """Factory creating a Master IPO; launched (active) unless launch=False."""

    async def _make(launch: bool = True, **overrides: Any) -> MasterIpo:
        svc = MasterIpoService(db)
        ipo = await svc.create(MasterIpoCreate(**ipo_payload(**overrides)))
        if launch:
            ipo = await svc.launch(ipo.id)
        return ipo

    return _make


@pytest.fixture
async def active_ipo(make_ipo: MakeIpo) -> MasterIpo:
    return await make_ipo()
