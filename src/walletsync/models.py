"""Core data model for wallet links, balances and portfolio state."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from walletsync.chains import ChainFamily, CustodyType
from walletsync.result import Err


class OriginSource(str, Enum):
    """Where a wallet link was last confirmed."""

    CACHE = "cache"
    REGISTRY = "registry"
    CHAIN = "chain"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WalletLink:
    """A user's wallet on one chain family.

    Links are provisioned elsewhere; this package only reads and reconciles them.
    """

    chain_family: ChainFamily
    address: str
    custody_type: CustodyType
    origin_source: OriginSource


@dataclass
class BalanceSnapshot:
    """Balances of one chain family keyed by token symbol."""

    chain_family: ChainFamily
    chain_name: str
    balances: dict[str, Decimal] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=utcnow)

    @property
    def all_zero(self) -> bool:
        """True when no balance is non-zero (including an empty set)."""
        return all(amount == 0 for amount in self.balances.values())


@dataclass
class ConnectionState:
    """Canonical connection state produced by reconciliation.

    Attributes:
        custodial_connected: Whether a custodial (EVM) wallet is usable
        non_custodial_address: Self-custody (Aptos) address, None if not connected
        custodial_address: Registry address of the custodial wallet, if known
        links: At most one WalletLink per chain family
        degraded: True when the registry could not be reached
    """

    custodial_connected: bool = False
    non_custodial_address: Optional[str] = None
    custodial_address: Optional[str] = None
    links: dict[ChainFamily, WalletLink] = field(default_factory=dict)
    degraded: bool = False

    @property
    def non_custodial_connected(self) -> bool:
        return bool(self.non_custodial_address)

    @property
    def has_any_wallet(self) -> bool:
        return self.custodial_connected or self.non_custodial_connected

    @property
    def connected_families(self) -> list[ChainFamily]:
        """Chain families that need a balance fetch, in fetch order."""
        families = []
        if self.custodial_connected:
            families.append(ChainFamily.EVM)
        if self.non_custodial_connected:
            families.append(ChainFamily.APTOS)
        return families


@dataclass
class PortfolioState:
    """Committed multi-chain balance snapshot.

    Attributes:
        balances: Chain-qualified label -> amount
        total_stable_value: Sum of stable-asset balances only
        last_refreshed: When this snapshot was committed
        failures: Chain families whose fetch failed in this pass
    """

    balances: dict[str, Decimal] = field(default_factory=dict)
    total_stable_value: Decimal = Decimal("0")
    last_refreshed: datetime = field(default_factory=utcnow)
    failures: dict[ChainFamily, Err] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "PortfolioState":
        return cls()

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)
