"""Simulated funding collaborator for dry-run mode and tests."""

from walletsync.errors import ActivationError
from walletsync.funding.base import FundingCollaborator, FundingResult


class SimulatedFunder(FundingCollaborator):
    """Records funding requests without touching any chain."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.funded: list[str] = []

    @property
    def name(self) -> str:
        return "dryrun"

    async def fund(self, address: str) -> FundingResult:
        self.funded.append(address)
        if self.fail:
            raise ActivationError("Simulated faucet failure", "aptos")
        return FundingResult(success=True, address=address, tx_hashes=[f"sim_fund_{len(self.funded)}"])
