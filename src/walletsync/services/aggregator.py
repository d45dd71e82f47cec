"""Multi-chain balance aggregation.

One fetch task is issued per connected chain family and the tasks are joined
with a settle-all gather: a failing family never cancels or discards its
siblings. Results are merged into chain-qualified labels and a total that
counts stable assets only.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Awaitable, Optional

from walletsync.chains import (
    EVM_NATIVE_SYMBOLS,
    ChainFamily,
    chain_label,
    get_chain,
    normalize_symbol,
    stable_symbol,
)
from walletsync.errors import ErrorKind, ProviderDataError, WalletUnavailableError
from walletsync.models import BalanceSnapshot, ConnectionState, PortfolioState
from walletsync.probes.base import ChainStateProbe
from walletsync.probes.factory import ProbeSet
from walletsync.result import Err, Ok, Result, settle

logger = logging.getLogger(__name__)


class BalanceAggregator:
    """Builds a PortfolioState from the connected chain families."""

    def __init__(
        self,
        probes: ProbeSet,
        stable_symbols: frozenset[str],
        evm_fallback_address: str,
        evm_native_symbols: Optional[frozenset[str]] = None,
    ):
        """Initialize aggregator.

        Args:
            probes: Chain probes of the session
            stable_symbols: Symbols counted in the stable-value total
            evm_fallback_address: EVM address used when the registry has none
            evm_native_symbols: EVM gas tokens shown as display-only
        """
        self.probes = probes
        self.stable_symbols = stable_symbols
        self.evm_fallback_address = evm_fallback_address
        self.evm_native_symbols = evm_native_symbols or EVM_NATIVE_SYMBOLS
        self.last_task_count = 0

    def plan(self, state: ConnectionState) -> list[tuple[ChainFamily, str]]:
        """Chain families to fetch and the address to use for each."""
        jobs = []
        for family in state.connected_families:
            if family == ChainFamily.EVM:
                jobs.append((family, state.custodial_address or self.evm_fallback_address))
            else:
                jobs.append((family, state.non_custodial_address))
        return jobs

    async def aggregate(self, state: ConnectionState) -> PortfolioState:
        """Fetch every connected family concurrently and merge the results.

        Raises:
            WalletUnavailableError: If every issued fetch failed
        """
        jobs = self.plan(state)
        self.last_task_count = len(jobs)

        if not jobs:
            logger.debug("No connected wallets, returning empty portfolio")
            return PortfolioState.empty()

        logger.info(f"Fetching balances for {len(jobs)} chain families...")
        outcomes = await asyncio.gather(
            *(self._fetch(family, address) for family, address in jobs),
            return_exceptions=True,
        )

        results: dict[ChainFamily, Result[BalanceSnapshot]] = {
            family: settle(outcome) for (family, _), outcome in zip(jobs, outcomes)
        }
        return self.merge(results)

    def _fetch(self, family: ChainFamily, address: str) -> Awaitable[Result[BalanceSnapshot]]:
        if family == ChainFamily.EVM:
            return self._fetch_evm(address)
        return self.probes.aptos.get_balances(address)

    async def _fetch_evm(self, address: str) -> Result[BalanceSnapshot]:
        """Primary custodial provider, with the direct RPC probe as fallback.

        The fallback runs when the primary fails or reports only zero
        balances; its successful result supersedes the primary's.
        """
        primary = await self._probe(self.probes.evm_primary, address)

        if isinstance(primary, Ok):
            if not primary.data.all_zero:
                return primary
            suspect = ProviderDataError(
                f"Custodial provider returned all-zero balances for {address}", "evm"
            )
            logger.warning(f"{suspect}; falling back to direct RPC probe")
        else:
            logger.warning(
                f"Custodial provider failed for {address} ({primary.detail}); "
                f"falling back to direct RPC probe"
            )

        fallback = await self._probe(self.probes.evm_fallback, address)
        if isinstance(fallback, Ok):
            return fallback

        if isinstance(primary, Ok):
            logger.warning(f"Direct RPC probe failed ({fallback.detail}); keeping provider result")
            return primary

        return Err(
            kind=fallback.kind,
            detail=f"primary: {primary.detail}; fallback: {fallback.detail}",
            retryable=fallback.retryable or primary.retryable,
        )

    @staticmethod
    async def _probe(probe: ChainStateProbe, address: str) -> Result[BalanceSnapshot]:
        try:
            return await probe.get_balances(address)
        except Exception as e:
            logger.error(f"{probe!r} raised while fetching {address}: {e}")
            return Err.from_exception(e)

    def merge(self, results: dict[ChainFamily, Result[BalanceSnapshot]]) -> PortfolioState:
        """Merge settled results into one PortfolioState.

        Raises:
            WalletUnavailableError: If no result succeeded
        """
        balances: dict[str, Decimal] = {}
        total = Decimal("0")
        failures: dict[ChainFamily, Err] = {}

        for family, result in results.items():
            if isinstance(result, Err):
                logger.error(f"Balance fetch for {family.value} failed: {result.detail}")
                failures[family] = result
                continue
            total += self._merge_snapshot(result.data, balances)

        if failures and len(failures) == len(results):
            raise WalletUnavailableError(
                "Could not load wallet balances: "
                + "; ".join(f"{f.value}: {e.detail}" for f, e in failures.items())
            )

        logger.info(f"Aggregated {len(balances)} balances, stable total {total}")
        return PortfolioState(balances=balances, total_stable_value=total, failures=failures)

    def _merge_snapshot(self, snapshot: BalanceSnapshot, balances: dict[str, Decimal]) -> Decimal:
        """Add one family's balances to the map; return its stable total."""
        chain = get_chain(snapshot.chain_family)
        if snapshot.chain_family == ChainFamily.EVM:
            natives = self.evm_native_symbols
        else:
            natives = frozenset({chain.native_symbol})

        stable_total = Decimal("0")
        for token, amount in snapshot.balances.items():
            stable = stable_symbol(token, self.stable_symbols)
            if stable:
                label = chain_label(stable, snapshot.chain_name)
                balances[label] = balances.get(label, Decimal("0")) + amount
                stable_total += amount
            elif normalize_symbol(token) in natives:
                # Display-only: never part of the total
                if amount != 0 or chain.always_show_native:
                    balances[chain_label(token, snapshot.chain_name)] = amount
            else:
                logger.debug(f"Ignoring {token} on {snapshot.chain_name}")

        return stable_total


def is_total_failure(err: Optional[Err]) -> bool:
    return err is not None and err.kind == ErrorKind.TOTAL_FAILURE
