"""Utility modules for walletsync."""

from walletsync.utils.locks import SingleFlight

__all__ = ["SingleFlight"]
