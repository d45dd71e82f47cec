"""Error taxonomy for wallet reconciliation and balance aggregation.

None of these errors is allowed to escape the session boundary: they are
either degraded to last-known-good state or converted to an ``Err`` result.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a failure."""

    CONNECTIVITY = "connectivity"              # Registry or chain unreachable
    ACTIVATION = "activation"                  # Chain account not yet funded
    PROVIDER_DATA = "provider_data"            # Suspect all-zero provider output
    PARTIAL_FAILURE = "partial_failure"        # One chain family failed
    TOTAL_FAILURE = "total_failure"            # Every chain family failed
    UNEXPECTED = "unexpected"


class WalletSyncError(Exception):
    """Base exception for the wallet sync subsystem."""

    kind: ErrorKind = ErrorKind.UNEXPECTED
    retryable: bool = False

    def __init__(self, message: str, chain_family: Optional[str] = None):
        self.chain_family = chain_family
        super().__init__(message)


class ConnectivityError(WalletSyncError):
    """Raised when the registry or a chain endpoint cannot be reached."""

    kind = ErrorKind.CONNECTIVITY
    retryable = True


class ActivationError(WalletSyncError):
    """Raised when an on-chain account could not be funded or activated."""

    kind = ErrorKind.ACTIVATION
    retryable = True


class ProviderDataError(WalletSyncError):
    """Raised when the primary balance provider returns suspect data."""

    kind = ErrorKind.PROVIDER_DATA


class AggregationPartialFailure(WalletSyncError):
    """One chain family's fetch failed while others succeeded."""

    kind = ErrorKind.PARTIAL_FAILURE
    retryable = True

    def __init__(self, failed_families: list[str]):
        self.failed_families = failed_families
        super().__init__(f"Balance fetch failed for: {', '.join(failed_families)}")


class WalletUnavailableError(WalletSyncError):
    """Every connected chain family failed; shown to the user as retryable."""

    kind = ErrorKind.TOTAL_FAILURE
    retryable = True
