"""Pytest configuration and fixtures."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "true"
os.environ["DRY_RUN"] = "true"
os.environ["MASTER_KEY"] = ""

from walletsync.chains import ChainFamily
from walletsync.funding.dryrun import SimulatedFunder
from walletsync.identity.cache import WalletIdentityCache
from walletsync.identity.models import Base
from walletsync.probes.base import SimulatedProbe
from walletsync.probes.factory import ProbeSet
from walletsync.registry.dryrun import InMemoryWalletRegistry
from walletsync.services.aggregator import BalanceAggregator
from walletsync.services.reconciliation import ReconciliationCoordinator

STABLES = frozenset({"USDC", "USDT", "DAI"})
FALLBACK_EVM_ADDRESS = "0x678bCC985D12C5fF769A2F4A5ff323A2029284Bb"
APTOS_ADDRESS = "0x" + "a1" * 32
EVM_ADDRESS = "0x1111111111111111111111111111111111111111"


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def identity_db(db_engine):
    """Session factory with commit/rollback semantics, bound to the test engine."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    @asynccontextmanager
    async def db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return db


@pytest.fixture
def wallet_cache(identity_db) -> WalletIdentityCache:
    """Identity cache for a test user."""
    return WalletIdentityCache("user-1", db=identity_db)


@pytest.fixture
def registry() -> InMemoryWalletRegistry:
    return InMemoryWalletRegistry()


@pytest.fixture
def funder() -> SimulatedFunder:
    return SimulatedFunder()


@pytest.fixture
def probes() -> ProbeSet:
    """Simulated probe set: Aptos, custodial provider and direct EVM RPC."""
    return ProbeSet(
        aptos=SimulatedProbe(ChainFamily.APTOS, "Aptos"),
        evm_primary=SimulatedProbe(ChainFamily.EVM, "EVM"),
        evm_fallback=SimulatedProbe(ChainFamily.EVM, "EVM"),
    )


@pytest.fixture
def coordinator(wallet_cache, registry, probes, funder) -> ReconciliationCoordinator:
    return ReconciliationCoordinator(
        cache=wallet_cache,
        registry=registry,
        self_custody_probe=probes.aptos,
        funder=funder,
    )


@pytest.fixture
def aggregator(probes) -> BalanceAggregator:
    return BalanceAggregator(
        probes=probes,
        stable_symbols=STABLES,
        evm_fallback_address=FALLBACK_EVM_ADDRESS,
    )
