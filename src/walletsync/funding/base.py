"""Funding collaborator interface.

Some chains require an initial funding transaction before an account can
hold or transfer assets. The collaborator is only invoked for accounts
whose activation state is false.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class FundingResult:
    """Outcome of an activation funding request."""

    success: bool
    address: str
    tx_hashes: list[str] = field(default_factory=list)
    error: Optional[str] = None


class FundingCollaborator(ABC):
    """Abstract base class for account funding clients."""

    @abstractmethod
    async def fund(self, address: str) -> FundingResult:
        """Fund an account so that it becomes active on-chain.

        Raises:
            ActivationError: If the funding request fails
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def name(self) -> str:
        raise NotImplementedError()
