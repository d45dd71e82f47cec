"""Custodial wallet provider balance API.

Primary balance source for the custodial wallet. The provider is known to
answer "success" with all-zero balances for some wallets; callers treat such
output as suspect and fall back to the direct RPC probe.

Endpoint: GET /v1-alpha2/wallets/{address}/balances?tokens=usdc,eth
Response: [{"token": "usdc", "decimals": 6, "balances": {"ethereum-sepolia": "20000000"}}]
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from walletsync.chains import ChainFamily, normalize_symbol
from walletsync.errors import ErrorKind
from walletsync.models import BalanceSnapshot
from walletsync.probes.base import ChainStateProbe
from walletsync.result import Err, Ok, Result

logger = logging.getLogger(__name__)


class CustodialBalanceProvider(ChainStateProbe):
    """Balance reader for wallets held by the custodial provider."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        provider_chain: str,
        chain_name: str = "EVM",
        tokens: tuple[str, ...] = ("usdc", "eth"),
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize provider client.

        Args:
            base_url: Provider API base URL
            api_key: Provider API key (sent as X-API-KEY)
            provider_chain: Chain key inside the provider's balance map
            chain_name: Label used for the resulting balances
            tokens: Token identifiers to request
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(ChainFamily.EVM, chain_name)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.provider_chain = provider_chain
        self.tokens = tokens
        self.timeout = timeout
        self._transport = transport

    async def get_balances(self, address: str) -> Result[BalanceSnapshot]:
        url = f"{self.base_url}/v1-alpha2/wallets/{address}/balances"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    url,
                    params={"tokens": ",".join(self.tokens)},
                    headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.warning(f"Custodial provider unreachable: {e}")
            return Err(kind=ErrorKind.CONNECTIVITY, detail=str(e), retryable=True)

        if response.status_code != 200:
            logger.warning(f"Custodial provider error: {response.status_code}")
            return Err(
                kind=ErrorKind.CONNECTIVITY,
                detail=f"Custodial provider HTTP {response.status_code}",
                retryable=True,
            )

        try:
            rows = response.json()
            balances = self._parse_balances(rows)
        except (ValueError, TypeError, KeyError) as e:
            return Err(kind=ErrorKind.PROVIDER_DATA, detail=f"Malformed provider response: {e}")

        return Ok(self.snapshot(balances))

    def _parse_balances(self, rows: list) -> dict[str, Decimal]:
        """Convert provider rows into symbol -> amount for the configured chain."""
        balances: dict[str, Decimal] = {}
        for row in rows:
            symbol = normalize_symbol(row["token"])
            decimals = int(row.get("decimals") or 0)
            raw = (row.get("balances") or {}).get(self.provider_chain, "0")
            balances[symbol] = Decimal(str(raw or 0)) / Decimal(10**decimals)
        return balances

    async def get_activation_state(self, address: str) -> bool:
        """Custodial accounts are activated by the provider."""
        return True
