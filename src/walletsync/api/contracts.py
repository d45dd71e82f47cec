"""Request and response contracts for the session API.

Amounts are serialised as decimal strings so no precision is lost in JSON.
"""

from typing import Optional

from pydantic import BaseModel, Field

from walletsync.models import ConnectionState, PortfolioState
from walletsync.result import Err


class SessionStartRequest(BaseModel):
    """Request to start a wallet session for a signed-in user."""

    user_id: str = Field(..., min_length=1, max_length=128, description="Platform user ID")
    auth_token: str = Field(..., min_length=1, description="Token for the wallet registry")


class ErrorContract(BaseModel):
    """Tagged failure of a reconciliation or refresh."""

    kind: str
    detail: str
    retryable: bool = False

    @classmethod
    def from_err(cls, err: Optional[Err]) -> Optional["ErrorContract"]:
        if err is None:
            return None
        return cls(**err.to_dict())


class WalletLinkContract(BaseModel):
    """A reconciled wallet link."""

    chain_family: str
    address: str
    custody_type: str
    origin_source: str


class ConnectionContract(BaseModel):
    """Reconciled connection state."""

    custodial_connected: bool
    non_custodial_connected: bool
    non_custodial_address: Optional[str] = None
    custodial_address: Optional[str] = None
    degraded: bool = Field(False, description="Registry was unreachable; cache state used")
    links: list[WalletLinkContract] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: ConnectionState) -> "ConnectionContract":
        return cls(
            custodial_connected=state.custodial_connected,
            non_custodial_connected=state.non_custodial_connected,
            non_custodial_address=state.non_custodial_address,
            custodial_address=state.custodial_address,
            degraded=state.degraded,
            links=[
                WalletLinkContract(
                    chain_family=link.chain_family.value,
                    address=link.address,
                    custody_type=link.custody_type.value,
                    origin_source=link.origin_source.value,
                )
                for link in state.links.values()
            ],
        )


class PortfolioContract(BaseModel):
    """Committed multi-chain balance snapshot."""

    balances: dict[str, str] = Field(
        default_factory=dict, description="Chain-qualified label -> amount, e.g. 'USDC (Aptos)'"
    )
    total_stable_value: str = Field("0", description="Sum of stable-asset balances only")
    last_refreshed: str = Field(..., description="Commit timestamp (ISO 8601)")
    failures: dict[str, ErrorContract] = Field(
        default_factory=dict, description="Chain families that failed in this pass"
    )

    @classmethod
    def from_state(cls, state: Optional[PortfolioState]) -> Optional["PortfolioContract"]:
        if state is None:
            return None
        return cls(
            balances={label: str(amount) for label, amount in state.balances.items()},
            total_stable_value=str(state.total_stable_value),
            last_refreshed=state.last_refreshed.isoformat(),
            failures={
                family.value: ErrorContract.from_err(err) for family, err in state.failures.items()
            },
        )


class SessionResponse(BaseModel):
    """Session state returned by every session endpoint."""

    session_id: str
    user_id: str
    connection: ConnectionContract
    portfolio: Optional[PortfolioContract] = None
    error: Optional[ErrorContract] = Field(None, description="Last refresh failure, if any")
    auto_refresh: bool = Field(False, description="Periodic refresh is running")
