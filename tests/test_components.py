"""Tests for shared components: result type, single-flight guard, crypto, chains."""

import asyncio
from decimal import Decimal

import pytest
from cryptography.fernet import Fernet

from walletsync.chains import ChainFamily, chain_label, stable_symbol
from walletsync.config import Settings
from walletsync.crypto import KeyRefEncryptor, open_key_ref
from walletsync.errors import (
    AggregationPartialFailure,
    ConnectivityError,
    ErrorKind,
    ProviderDataError,
    WalletUnavailableError,
)
from walletsync.models import BalanceSnapshot, ConnectionState
from walletsync.result import Err, Ok, settle
from walletsync.utils.locks import SingleFlight

STABLES = frozenset({"USDC", "USDT", "DAI"})


class TestResult:
    """Tagged Ok/Err results."""

    def test_settle_exception(self):
        result = settle(ConnectivityError("registry down"))

        assert isinstance(result, Err)
        assert result.kind == ErrorKind.CONNECTIVITY
        assert result.retryable is True
        assert result.detail == "registry down"

    def test_settle_unexpected_exception(self):
        result = settle(KeyError("balances"))

        assert result.kind == ErrorKind.UNEXPECTED
        assert result.retryable is False
        assert "KeyError" in result.detail

    def test_settle_passes_tagged_results_through(self):
        ok = Ok(1)
        err = Err(ErrorKind.PROVIDER_DATA, "zeros")

        assert settle(ok) is ok
        assert settle(err) is err
        assert settle({"USDC": 1}) == Ok({"USDC": 1})

    def test_err_to_dict(self):
        err = Err.from_exception(WalletUnavailableError("all chains failed"))

        assert err.to_dict() == {
            "kind": "total_failure",
            "detail": "all chains failed",
            "retryable": True,
        }

    def test_error_kinds(self):
        assert ProviderDataError("zeros").retryable is False
        partial = AggregationPartialFailure(["evm"])
        assert partial.kind == ErrorKind.PARTIAL_FAILURE
        assert partial.failed_families == ["evm"]
        assert "evm" in str(partial)


class TestSingleFlight:
    """Deduplication of concurrent calls."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_result(self):
        flight = SingleFlight()
        calls = 0
        gate = asyncio.Event()

        async def work():
            nonlocal calls
            calls += 1
            await gate.wait()
            return calls

        first = asyncio.create_task(flight.run("s1", work))
        second = asyncio.create_task(flight.run("s1", work))
        await asyncio.sleep(0)
        assert flight.in_flight("s1") is True

        gate.set()
        assert await asyncio.gather(first, second) == [1, 1]
        assert calls == 1
        assert flight.in_flight("s1") is False

    @pytest.mark.asyncio
    async def test_different_keys_run_separately(self):
        flight = SingleFlight()
        calls = []

        async def work(key):
            calls.append(key)
            return key

        results = await asyncio.gather(
            flight.run("s1", lambda: work("s1")),
            flight.run("s2", lambda: work("s2")),
        )

        assert results == ["s1", "s2"]
        assert sorted(calls) == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_key_released_after_failure(self):
        flight = SingleFlight()

        async def boom():
            raise RuntimeError("fail")

        with pytest.raises(RuntimeError):
            await flight.run("s1", boom)

        assert flight.in_flight("s1") is False

        async def ok():
            return "ok"

        assert await flight.run("s1", ok) == "ok"

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_work(self):
        flight = SingleFlight()
        gate = asyncio.Event()
        done = []

        async def work():
            await gate.wait()
            done.append(True)
            return "done"

        waiter = asyncio.create_task(flight.run("s1", work))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        joiner = asyncio.create_task(flight.run("s1", work))
        await asyncio.sleep(0)
        gate.set()

        assert await joiner == "done"
        assert done == [True]


class TestKeyRefEncryption:
    """Fernet sealing of cached key references."""

    def test_encrypt_decrypt(self):
        encryptor = KeyRefEncryptor(Fernet.generate_key().decode())

        sealed = encryptor.encrypt("ref")

        assert sealed != "ref"
        assert encryptor.decrypt(sealed) == "ref"

    def test_open_plain_value_is_rejected(self):
        encryptor = KeyRefEncryptor(Fernet.generate_key().decode())

        assert open_key_ref("PRIVATE-KEY-HEX", encryptor) is None
        assert open_key_ref("PRIVATE-KEY-HEX", None) is None

    def test_open_with_wrong_key(self):
        sealed = KeyRefEncryptor(Fernet.generate_key().decode()).encrypt("ref")

        assert open_key_ref(sealed, KeyRefEncryptor(Fernet.generate_key().decode())) is None


class TestChains:
    """Chain families, labels and stable assets."""

    def test_labels(self):
        assert chain_label("usdc", "Aptos") == "USDC (Aptos)"
        assert chain_label("ETH", "EVM") == "ETH (EVM)"

    def test_stable_symbol(self):
        assert stable_symbol("usdc", STABLES) == "USDC"
        assert stable_symbol("USDC.e", STABLES) == "USDC"
        assert stable_symbol("APT", STABLES) is None
        assert stable_symbol("ETH", STABLES) is None

    def test_stable_symbol_needs_exact_or_bridged_match(self):
        assert stable_symbol("DAIKON", STABLES) is None
        assert stable_symbol("USDCX", STABLES) is None
        assert stable_symbol("USDT.b", STABLES) == "USDT"
        assert stable_symbol("USDC.x", STABLES) is None


class TestModels:
    """Connection and snapshot helpers."""

    def test_all_zero(self):
        assert BalanceSnapshot(ChainFamily.EVM, "EVM").all_zero is True
        assert BalanceSnapshot(ChainFamily.EVM, "EVM", {"USDC": Decimal("0")}).all_zero is True
        assert BalanceSnapshot(ChainFamily.EVM, "EVM", {"USDC": Decimal("1")}).all_zero is False

    def test_connected_families(self):
        state = ConnectionState(custodial_connected=True, non_custodial_address="0xa1")

        assert state.connected_families == [ChainFamily.EVM, ChainFamily.APTOS]
        assert ConnectionState().connected_families == []


class TestSettings:
    """Configuration parsing."""

    def test_stable_symbols(self):
        settings = Settings(stable_assets="usdc, usdt ,")

        assert settings.stable_symbols == frozenset({"USDC", "USDT"})

    def test_safe_dict_redacts_secrets(self):
        settings = Settings(
            database_url="postgresql+asyncpg://app:secret@db:5432/wallets",
            custodial_provider_api_key="sk_live_123",
            master_key=Fernet.generate_key().decode(),
        )

        safe = settings.get_safe_dict()

        assert safe["database_url"] == "postgresql+asyncpg://app:***@db:5432/wallets"
        assert safe["custodial_provider"]["api_key"] == "***"
        assert safe["master_key"] == "***"
        assert "sk_live_123" not in str(safe)
