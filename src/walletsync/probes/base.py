"""Base interface for chain state probes.

A probe reads one chain family: the balance set of an address and whether
the on-chain account is activated. Probes never sign or broadcast.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from walletsync.chains import ChainFamily
from walletsync.errors import ConnectivityError, ErrorKind
from walletsync.models import BalanceSnapshot
from walletsync.result import Err, Ok, Result

logger = logging.getLogger(__name__)


class ChainStateProbe(ABC):
    """Abstract base class for chain state probes."""

    def __init__(self, family: ChainFamily, chain_name: str):
        self.family = family
        self.chain_name = chain_name

    @abstractmethod
    async def get_balances(self, address: str) -> Result[BalanceSnapshot]:
        """Get every balance held by an address.

        Returns:
            Ok(BalanceSnapshot) keyed by token symbol, or Err on failure
        """
        pass

    @abstractmethod
    async def get_activation_state(self, address: str) -> bool:
        """Check whether the on-chain account exists and can hold assets.

        Raises:
            ConnectivityError: If the chain cannot be reached
        """
        pass

    def snapshot(self, balances: dict[str, Decimal]) -> BalanceSnapshot:
        return BalanceSnapshot(
            chain_family=self.family, chain_name=self.chain_name, balances=balances
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(family={self.family.value})"


class SimulatedProbe(ChainStateProbe):
    """Simulated probe for dry-run mode and testing (no network)."""

    def __init__(self, family: ChainFamily, chain_name: str):
        super().__init__(family, chain_name)
        self._balances: dict[str, dict[str, Decimal]] = {}
        self._activated: set[str] = set()
        self._failure: Optional[Err] = None
        self._raise: Optional[Exception] = None
        self.balance_calls: list[str] = []
        self.activation_calls: list[str] = []

    async def get_balances(self, address: str) -> Result[BalanceSnapshot]:
        self.balance_calls.append(address)
        if self._raise is not None:
            raise self._raise
        if self._failure is not None:
            return self._failure
        return Ok(self.snapshot(dict(self._balances.get(address, {}))))

    async def get_activation_state(self, address: str) -> bool:
        self.activation_calls.append(address)
        if self._raise is not None:
            raise ConnectivityError(str(self._raise), self.family.value)
        return address in self._activated

    def set_balances(self, address: str, balances: dict[str, str | Decimal | int]) -> None:
        """Set the simulated balance set of an address."""
        self._balances[address] = {token: Decimal(str(v)) for token, v in balances.items()}

    def set_activated(self, address: str, activated: bool = True) -> None:
        if activated:
            self._activated.add(address)
        else:
            self._activated.discard(address)

    def fail_with(self, detail: str, kind: ErrorKind = ErrorKind.CONNECTIVITY) -> None:
        """Make get_balances return an Err."""
        self._failure = Err(kind=kind, detail=detail, retryable=True)

    def raise_on_call(self, exc: Exception) -> None:
        """Make every call raise."""
        self._raise = exc

    def recover(self) -> None:
        self._failure = None
        self._raise = None
