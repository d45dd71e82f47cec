"""Funding/activation collaborator clients."""

from walletsync.funding.base import FundingCollaborator, FundingResult
from walletsync.funding.factory import create_funder

__all__ = ["FundingCollaborator", "FundingResult", "create_funder"]
