"""Factory for creating chain state probes."""

from dataclasses import dataclass
from typing import Optional

from walletsync.chains import ChainFamily, get_chain
from walletsync.config import Settings, get_settings
from walletsync.probes.aptos import AptosProbe
from walletsync.probes.base import ChainStateProbe, SimulatedProbe
from walletsync.probes.custodial import CustodialBalanceProvider
from walletsync.probes.evm import EvmRpcProbe


@dataclass
class ProbeSet:
    """Probes used by one session.

    Attributes:
        aptos: Self-custody (account-model) probe
        evm_primary: Custodial provider balance reader
        evm_fallback: Direct EVM RPC probe
    """

    aptos: ChainStateProbe
    evm_primary: ChainStateProbe
    evm_fallback: ChainStateProbe


def create_probes(settings: Optional[Settings] = None) -> ProbeSet:
    """Create the probe set for the configured environment.

    In dry-run mode every probe is simulated.
    """
    settings = settings or get_settings()

    if settings.dry_run:
        return ProbeSet(
            aptos=SimulatedProbe(ChainFamily.APTOS, get_chain(ChainFamily.APTOS).name),
            evm_primary=SimulatedProbe(ChainFamily.EVM, settings.evm_chain_name),
            evm_fallback=SimulatedProbe(ChainFamily.EVM, settings.evm_chain_name),
        )

    return ProbeSet(
        aptos=AptosProbe(
            node_url=settings.aptos_node_url,
            indexer_url=settings.aptos_indexer_url,
            timeout=settings.probe_timeout,
        ),
        evm_primary=CustodialBalanceProvider(
            base_url=settings.custodial_provider_url,
            api_key=settings.custodial_provider_api_key,
            provider_chain=settings.custodial_provider_chain,
            chain_name=settings.evm_chain_name,
            timeout=settings.probe_timeout,
        ),
        evm_fallback=EvmRpcProbe(
            rpc_url=settings.evm_rpc_url,
            chain_name=settings.evm_chain_name,
            native_symbol=settings.evm_native_symbol,
            usdc_contract=settings.evm_usdc_contract,
            usdc_decimals=settings.evm_usdc_decimals,
            timeout=settings.probe_timeout,
        ),
    )
