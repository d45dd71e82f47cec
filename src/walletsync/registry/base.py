"""Backend wallet registry interface.

The registry is the canonical server-side record of provisioned wallets.
It wins whenever it disagrees with the local identity cache.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from walletsync.chains import ChainFamily, CustodyType


@dataclass(frozen=True)
class RegistryRecord:
    """Registry entry for one chain family."""

    connected: bool
    custody_type: CustodyType
    address: Optional[str] = None
    key_ref: Optional[str] = None  # Opaque key material reference (self-custody only)


class WalletRegistry(ABC):
    """Abstract base class for backend wallet registry clients."""

    @abstractmethod
    async def lookup(self, chain_family: ChainFamily) -> Optional[RegistryRecord]:
        """Look up the user's wallet on a chain family.

        Returns:
            RegistryRecord, or None when the registry has no wallet

        Raises:
            ConnectivityError: If the registry cannot be reached
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry client name."""
        raise NotImplementedError()
