"""Tests for the portfolio state store, refresh scheduler and sessions."""

import asyncio
from decimal import Decimal

import pytest

from walletsync.chains import ChainFamily
from walletsync.errors import ConnectivityError, ErrorKind
from walletsync.models import ConnectionState
from walletsync.services.portfolio_store import PortfolioStateStore, RefreshScheduler
from walletsync.session import WalletSession
from walletsync.utils.locks import SingleFlight

APTOS_ADDRESS = "0x" + "a1" * 32
EVM_ADDRESS = "0x1111111111111111111111111111111111111111"


@pytest.fixture
def store(aggregator) -> PortfolioStateStore:
    return PortfolioStateStore("session-1", aggregator, SingleFlight())


def _connected(store: PortfolioStateStore, custodial: bool = True, aptos: bool = True) -> None:
    store.update_connection(
        ConnectionState(
            custodial_connected=custodial,
            non_custodial_address=APTOS_ADDRESS if aptos else None,
            custodial_address=EVM_ADDRESS if custodial else None,
        )
    )


class SlowAggregator:
    """Aggregator stand-in that blocks until released."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0
        self.release = asyncio.Event()

    async def aggregate(self, state):
        self.calls += 1
        await self.release.wait()
        return await self.inner.aggregate(state)


class TestPortfolioStateStore:
    """Refresh guard, commit and failure handling."""

    @pytest.mark.asyncio
    async def test_refresh_without_wallets_is_skipped(self, store, probes):
        result = await store.refresh()

        assert result is None
        assert store.commits == 0
        assert probes.aptos.balance_calls == []

    @pytest.mark.asyncio
    async def test_forced_refresh_without_wallets_commits_empty(self, store):
        result = await store.refresh(force=True)

        assert result is not None
        assert result.balances == {}
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_refresh_commits_snapshot(self, store, probes):
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "5"})
        _connected(store, custodial=False)

        result = await store.refresh()

        assert store.state is result
        assert result.balances == {"USDC (Aptos)": Decimal("5")}
        assert store.last_error is None

    @pytest.mark.asyncio
    async def test_partial_failure_recorded(self, store, probes):
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "5"})
        probes.evm_primary.fail_with("provider down")
        probes.evm_fallback.fail_with("rpc down")
        _connected(store)

        result = await store.refresh()

        assert result.balances == {"USDC (Aptos)": Decimal("5")}
        assert store.last_error.kind == ErrorKind.PARTIAL_FAILURE
        assert "evm" in store.last_error.detail

    @pytest.mark.asyncio
    async def test_total_failure_keeps_last_state(self, store, probes):
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "5"})
        _connected(store, custodial=False)
        previous = await store.refresh()

        probes.aptos.fail_with("indexer down")
        result = await store.refresh()

        assert result is previous
        assert store.state is previous
        assert store.commits == 1
        assert store.last_error.kind == ErrorKind.TOTAL_FAILURE
        assert store.last_error.retryable is True

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self, store):
        class Broken:
            async def aggregate(self, state):
                raise RuntimeError("bug")

        store.aggregator = Broken()
        _connected(store)

        result = await store.refresh()

        assert result is None
        assert store.last_error.kind == ErrorKind.UNEXPECTED

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_fetch(self, store, aggregator, probes):
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "5"})
        _connected(store, custodial=False)
        slow = SlowAggregator(aggregator)
        store.aggregator = slow

        first = asyncio.create_task(store.refresh(force=True))
        second = asyncio.create_task(store.refresh(force=True))
        await asyncio.sleep(0)
        slow.release.set()
        results = await asyncio.gather(first, second)

        assert slow.calls == 1
        assert len(probes.aptos.balance_calls) == 1
        assert results[0] is results[1]
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_result_after_close_is_discarded(self, store, aggregator, probes):
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "5"})
        _connected(store, custodial=False)
        slow = SlowAggregator(aggregator)
        store.aggregator = slow

        task = asyncio.create_task(store.refresh(force=True))
        await asyncio.sleep(0)
        store.close()
        slow.release.set()
        result = await task

        assert result is None
        assert store.state is None
        assert store.commits == 0

    @pytest.mark.asyncio
    async def test_refresh_after_close_is_noop(self, store):
        store.close()

        assert await store.refresh(force=True) is None
        assert store.commits == 0


class TestRefreshScheduler:
    """Periodic refresh timer."""

    @pytest.mark.asyncio
    async def test_scheduler_refreshes_periodically(self, store, probes):
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "1"})
        _connected(store, custodial=False)
        scheduler = RefreshScheduler(store, interval_seconds=0.01)

        scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert store.commits >= 2
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, store):
        scheduler = RefreshScheduler(store, interval_seconds=60)

        scheduler.start()
        task = scheduler._task
        scheduler.start()

        assert scheduler._task is task
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, store):
        scheduler = RefreshScheduler(store)

        await scheduler.stop()

        assert scheduler.running is False


class TestWalletSession:
    """Session lifecycle: reconcile, refresh, logout."""

    @pytest.fixture
    def session(self, wallet_cache, coordinator, aggregator) -> WalletSession:
        return WalletSession(
            session_id="session-1",
            user_id="user-1",
            cache=wallet_cache,
            coordinator=coordinator,
            aggregator=aggregator,
            single_flight=SingleFlight(),
            refresh_interval=60,
        )

    @pytest.mark.asyncio
    async def test_start_reconciles_then_refreshes(self, session, registry, probes):
        registry.add_wallet(ChainFamily.EVM, EVM_ADDRESS)
        registry.add_wallet(ChainFamily.APTOS, APTOS_ADDRESS)
        probes.aptos.set_activated(APTOS_ADDRESS)
        probes.evm_primary.set_balances(EVM_ADDRESS, {"USDC": "10"})
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "25", "APT": "1"})

        portfolio = await session.start()

        assert session.connection.custodial_connected is True
        assert portfolio.total_stable_value == Decimal("35")
        assert session.scheduler.running is True
        await session.close()

    @pytest.mark.asyncio
    async def test_start_with_unreachable_provider_uses_direct_rpc(
        self, session, registry, probes
    ):
        registry.add_wallet(ChainFamily.EVM, EVM_ADDRESS)
        registry.add_wallet(ChainFamily.APTOS, "0xAAA")
        probes.aptos.set_activated("0xAAA")
        probes.aptos.set_balances("0xAAA", {"APT": "100", "USDC": "25"})
        probes.evm_primary.raise_on_call(ConnectivityError("provider unreachable", "evm"))
        probes.evm_fallback.set_balances(EVM_ADDRESS, {"USDC": "10"})

        portfolio = await session.start()

        assert session.connection.custodial_connected is True
        assert session.connection.non_custodial_address == "0xAAA"
        assert portfolio.balances == {
            "USDC (Aptos)": Decimal("25"),
            "APT (Aptos)": Decimal("100"),
            "USDC (EVM)": Decimal("10"),
        }
        assert portfolio.total_stable_value == Decimal("35")
        assert portfolio.failures == {}
        assert session.store.last_error is None
        await session.close()

    @pytest.mark.asyncio
    async def test_scheduler_only_with_custodial_wallet(self, session, registry, probes):
        registry.add_wallet(ChainFamily.APTOS, APTOS_ADDRESS)
        probes.aptos.set_activated(APTOS_ADDRESS)

        await session.start()

        assert session.scheduler.running is False
        await session.close()

    @pytest.mark.asyncio
    async def test_disconnect_stops_scheduler(self, session, registry, wallet_cache):
        registry.add_wallet(ChainFamily.EVM, EVM_ADDRESS)
        await session.start()
        assert session.scheduler.running is True

        del registry.records[ChainFamily.EVM]
        await wallet_cache.set_custodial_connected(False)
        await session.reconcile()

        assert session.scheduler.running is False
        await session.close()

    @pytest.mark.asyncio
    async def test_logout_clears_cache_and_state(self, session, registry, wallet_cache):
        registry.add_wallet(ChainFamily.EVM, EVM_ADDRESS)
        await session.start()
        assert await wallet_cache.get_custodial_connected() is True

        await session.close(clear_cache=True)

        assert session.closed is True
        assert session.portfolio is None
        assert session.scheduler.running is False
        assert await wallet_cache.snapshot() == {}

    @pytest.mark.asyncio
    async def test_resync_picks_up_new_wallet(self, session, registry, probes):
        await session.start()
        assert session.connection.has_any_wallet is False

        registry.add_wallet(ChainFamily.APTOS, APTOS_ADDRESS)
        probes.aptos.set_balances(APTOS_ADDRESS, {"USDC": "3"})
        portfolio = await session.resync()

        assert portfolio.balances == {"USDC (Aptos)": Decimal("3")}
