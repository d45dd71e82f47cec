"""Reconciliation, aggregation and portfolio state services."""

from walletsync.services.aggregator import BalanceAggregator
from walletsync.services.portfolio_store import PortfolioStateStore, RefreshScheduler
from walletsync.services.reconciliation import ReconciliationCoordinator

__all__ = [
    "BalanceAggregator",
    "PortfolioStateStore",
    "ReconciliationCoordinator",
    "RefreshScheduler",
]
