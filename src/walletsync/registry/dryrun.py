"""In-memory registry for dry-run mode and tests."""

from typing import Optional

from walletsync.chains import ChainFamily, get_chain
from walletsync.errors import ConnectivityError
from walletsync.registry.base import RegistryRecord, WalletRegistry


class InMemoryWalletRegistry(WalletRegistry):
    """Registry holding records in a dict; can simulate an outage."""

    def __init__(self, records: Optional[dict[ChainFamily, RegistryRecord]] = None):
        self.records: dict[ChainFamily, RegistryRecord] = dict(records or {})
        self.reachable = True
        self.lookups: list[ChainFamily] = []

    @property
    def name(self) -> str:
        return "dryrun"

    async def lookup(self, chain_family: ChainFamily) -> Optional[RegistryRecord]:
        self.lookups.append(chain_family)
        if not self.reachable:
            raise ConnectivityError("Simulated registry outage", chain_family.value)
        return self.records.get(chain_family)

    def add_wallet(
        self, chain_family: ChainFamily, address: str, key_ref: Optional[str] = None
    ) -> RegistryRecord:
        """Register a simulated provisioned wallet."""
        record = RegistryRecord(
            connected=True,
            custody_type=get_chain(chain_family).custody_type,
            address=address,
            key_ref=key_ref,
        )
        self.records[chain_family] = record
        return record
