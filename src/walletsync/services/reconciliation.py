"""Wallet reconciliation across cache, backend registry and chain state.

Rules:
- Custodial: connected if the registry has a record OR the cache flag is set.
  A registry record missing from the cache is written through.
- Self-custody: the registry is canonical. Its address is written through to
  the cache and the account is activated on-chain when needed.
- Orphan rule: a self-custody address known only to the cache is reported as
  not connected, since the platform cannot activate or fund it.
- Registry unreachable: degrade to the cached state for that family.

Reconciliation only reads and reconciles links; it never creates a wallet.
"""

import logging
from typing import Awaitable

from sqlalchemy.exc import SQLAlchemyError

from walletsync.chains import ChainFamily, CustodyType
from walletsync.errors import ActivationError, ConnectivityError
from walletsync.funding.base import FundingCollaborator
from walletsync.identity.cache import WalletIdentityCache
from walletsync.models import ConnectionState, OriginSource, WalletLink
from walletsync.probes.base import ChainStateProbe
from walletsync.registry.base import WalletRegistry

logger = logging.getLogger(__name__)


class ReconciliationCoordinator:
    """Resolves the canonical connection state for one user."""

    def __init__(
        self,
        cache: WalletIdentityCache,
        registry: WalletRegistry,
        self_custody_probe: ChainStateProbe,
        funder: FundingCollaborator,
    ):
        self.cache = cache
        self.registry = registry
        self.self_custody_probe = self_custody_probe
        self.funder = funder

    async def reconcile(self) -> ConnectionState:
        """Merge cache, registry and chain signals into a ConnectionState.

        Never raises for registry, chain, funding or cache failures.
        """
        state = ConnectionState()

        await self._reconcile_custodial(state)
        await self._reconcile_self_custody(state)

        logger.info(
            f"Reconciled wallets for user {self.cache.user_id}: "
            f"custodial={state.custodial_connected}, "
            f"self_custody={state.non_custodial_address or '-'}"
            f"{' (degraded)' if state.degraded else ''}"
        )
        return state

    async def _reconcile_custodial(self, state: ConnectionState) -> None:
        cache_flag = await self._read_cache(self.cache.get_custodial_connected(), False)

        try:
            record = await self.registry.lookup(ChainFamily.EVM)
        except ConnectivityError as e:
            logger.warning(f"Registry unreachable, using cached custodial flag: {e}")
            state.degraded = True
            state.custodial_connected = cache_flag
            return

        has_record = record is not None and record.connected
        state.custodial_connected = has_record or cache_flag

        if not has_record:
            return

        state.custodial_address = record.address
        if record.address:
            state.links[ChainFamily.EVM] = WalletLink(
                chain_family=ChainFamily.EVM,
                address=record.address,
                custody_type=CustodyType.CUSTODIAL,
                origin_source=OriginSource.REGISTRY,
            )

        if not cache_flag:
            logger.info("Custodial wallet found in registry but not in cache, healing cache")
            await self._write_cache(self.cache.set_custodial_connected(True), "custodial flag")

    async def _reconcile_self_custody(self, state: ConnectionState) -> None:
        cached_address = await self._read_cache(self.cache.get_self_custody_address(), None)

        try:
            record = await self.registry.lookup(ChainFamily.APTOS)
        except ConnectivityError as e:
            logger.warning(f"Registry unreachable, using cached self-custody address: {e}")
            state.degraded = True
            if cached_address:
                state.non_custodial_address = cached_address
                state.links[ChainFamily.APTOS] = WalletLink(
                    chain_family=ChainFamily.APTOS,
                    address=cached_address,
                    custody_type=CustodyType.SELF_CUSTODY,
                    origin_source=OriginSource.CACHE,
                )
            return

        if record is None or not record.connected or not record.address:
            if cached_address:
                # Orphan rule: pending product confirmation, see DESIGN.md
                logger.warning(
                    f"Self-custody wallet {cached_address} is in the cache but not in the "
                    f"registry; reporting it as not connected"
                )
            return

        address = record.address
        if cached_address and cached_address != address:
            logger.info(f"Registry self-custody address {address} replaces cached {cached_address}")

        if cached_address != address or record.key_ref:
            await self._write_cache(
                self.cache.set_self_custody(address, record.key_ref), "self-custody address"
            )

        state.non_custodial_address = address
        activated = await self._ensure_activated(address)
        state.links[ChainFamily.APTOS] = WalletLink(
            chain_family=ChainFamily.APTOS,
            address=address,
            custody_type=CustodyType.SELF_CUSTODY,
            origin_source=OriginSource.CHAIN if activated else OriginSource.REGISTRY,
        )

    async def _ensure_activated(self, address: str) -> bool:
        """Probe activation and request funding for inactive accounts.

        Returns:
            True if the chain confirmed the account is active
        """
        try:
            active = await self.self_custody_probe.get_activation_state(address)
        except Exception as e:
            logger.warning(f"Activation probe failed for {address}: {e}")
            return False

        if active:
            logger.debug(f"Self-custody account {address} is active on-chain")
            return True

        logger.info(f"Self-custody account {address} is not active, requesting funding")
        try:
            result = await self.funder.fund(address)
            logger.info(f"Funded {address} via {self.funder.name}: {result.tx_hashes}")
        except ActivationError as e:
            logger.error(f"Activation funding failed for {address}: {e}")
        except Exception as e:
            logger.error(f"Unexpected funding error for {address}: {e}")

        return False

    async def _read_cache(self, read: Awaitable, default):
        try:
            return await read
        except SQLAlchemyError as e:
            logger.error(f"Identity cache read failed: {e}")
            return default

    async def _write_cache(self, write: Awaitable, what: str) -> bool:
        try:
            await write
            return True
        except SQLAlchemyError as e:
            logger.error(f"Identity cache write-through failed ({what}): {e}")
            return False
