"""Wallet reconciliation and multi-chain balance aggregation."""

__version__ = "0.1.0"
