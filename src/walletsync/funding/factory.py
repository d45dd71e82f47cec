"""Factory for creating the funding collaborator."""

from typing import Optional

from walletsync.config import Settings, get_settings
from walletsync.funding.base import FundingCollaborator
from walletsync.funding.dryrun import SimulatedFunder
from walletsync.funding.faucet import AptosFaucetFunder


def create_funder(settings: Optional[Settings] = None) -> FundingCollaborator:
    """Create the funding collaborator for the configured environment."""
    settings = settings or get_settings()

    if settings.dry_run:
        return SimulatedFunder()

    return AptosFaucetFunder(
        faucet_url=settings.aptos_faucet_url,
        amount_octas=settings.aptos_fund_amount_octas,
    )
