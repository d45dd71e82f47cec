"""Aptos (account-model chain) probe.

Reads the native APT balance through the fullnode view API and fungible
asset balances (USDC and others) through the indexer GraphQL API.
API Docs: https://aptos.dev/en/build/apis
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from walletsync.chains import ChainFamily, get_chain, normalize_symbol
from walletsync.errors import ConnectivityError, ErrorKind
from walletsync.models import BalanceSnapshot
from walletsync.probes.base import ChainStateProbe
from walletsync.result import Err, Ok, Result

logger = logging.getLogger(__name__)

APT_COIN_TYPE = "0x1::aptos_coin::AptosCoin"

FA_BALANCES_QUERY = """
query($addr: String!) {
  current_fungible_asset_balances(where: {owner_address: {_eq: $addr}}) {
    amount
    asset_type
    metadata { symbol name decimals }
  }
}
"""


def normalize_address(address: str) -> str:
    """Normalize an Aptos address to 0x + 64 lowercase hex chars."""
    raw = (address or "").strip().lower()
    if raw.startswith("0x"):
        raw = raw[2:]
    return "0x" + raw.zfill(64)


class AptosProbe(ChainStateProbe):
    """Balance and activation probe for Aptos accounts."""

    def __init__(
        self,
        node_url: str,
        indexer_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Aptos probe.

        Args:
            node_url: Fullnode REST URL (".../v1")
            indexer_url: Indexer GraphQL URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        chain = get_chain(ChainFamily.APTOS)
        super().__init__(ChainFamily.APTOS, chain.name)
        self.node_url = node_url.rstrip("/")
        self.indexer_url = indexer_url
        self.timeout = timeout
        self.native_symbol = chain.native_symbol
        self.native_decimals = chain.native_decimals
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def get_balances(self, address: str) -> Result[BalanceSnapshot]:
        acct = normalize_address(address)
        balances: dict[str, Decimal] = {}
        errors: list[str] = []

        async with self._client() as client:
            try:
                balances[self.native_symbol] = await self._get_native_balance(client, acct)
            except (httpx.HTTPError, ConnectivityError, ValueError) as e:
                logger.warning(f"[APT] balance read failed for {acct}: {e}")
                errors.append(f"native: {e}")

            try:
                for symbol, amount in (await self._get_fungible_balances(client, acct)).items():
                    # APT also appears as a fungible asset; the node value is authoritative
                    if symbol == self.native_symbol and self.native_symbol in balances:
                        continue
                    balances[symbol] = balances.get(symbol, Decimal("0")) + amount
            except (httpx.HTTPError, ConnectivityError, ValueError) as e:
                logger.warning(f"[FA] indexer read failed for {acct}: {e}")
                errors.append(f"fungible assets: {e}")

        if len(errors) == 2:
            return Err(
                kind=ErrorKind.CONNECTIVITY,
                detail=f"Aptos balances unavailable for {acct}: {'; '.join(errors)}",
                retryable=True,
            )

        logger.debug(f"Aptos balances for {acct}: {balances}")
        return Ok(self.snapshot(balances))

    async def _get_native_balance(self, client: httpx.AsyncClient, acct: str) -> Decimal:
        """Read APT through the 0x1::coin::balance view function."""
        response = await client.post(
            f"{self.node_url}/view",
            json={
                "function": "0x1::coin::balance",
                "type_arguments": [APT_COIN_TYPE],
                "arguments": [acct],
            },
        )

        # Unknown accounts have no balance yet
        if response.status_code in (400, 404):
            return Decimal("0")

        if response.status_code != 200:
            raise ConnectivityError(f"Aptos node error: HTTP {response.status_code}", "aptos")

        result = response.json()
        octas = int(result[0]) if result else 0
        return Decimal(octas) / Decimal(10**self.native_decimals)

    async def _get_fungible_balances(
        self, client: httpx.AsyncClient, acct: str
    ) -> dict[str, Decimal]:
        """Read every fungible asset balance from the indexer."""
        response = await client.post(
            self.indexer_url,
            json={"query": FA_BALANCES_QUERY, "variables": {"addr": acct}},
        )

        if response.status_code != 200:
            raise ConnectivityError(f"Aptos indexer error: HTTP {response.status_code}", "aptos")

        data = response.json()
        if data.get("errors"):
            raise ConnectivityError(f"Aptos indexer GraphQL errors: {data['errors']}", "aptos")

        rows = (data.get("data") or {}).get("current_fungible_asset_balances") or []
        balances: dict[str, Decimal] = {}

        for row in rows:
            metadata = row.get("metadata") or {}
            symbol = normalize_symbol(
                metadata.get("symbol")
                or metadata.get("name")
                or (row.get("asset_type") or "FA")[:10]
            )
            decimals = int(metadata.get("decimals") or 0)
            amount = Decimal(str(row.get("amount") or 0)) / Decimal(10**decimals)
            balances[symbol] = balances.get(symbol, Decimal("0")) + amount

        return balances

    async def get_activation_state(self, address: str) -> bool:
        acct = normalize_address(address)
        try:
            async with self._client() as client:
                response = await client.get(f"{self.node_url}/accounts/{acct}")
        except httpx.HTTPError as e:
            raise ConnectivityError(f"Aptos node unreachable: {e}", "aptos") from e

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False

        raise ConnectivityError(f"Aptos node error: HTTP {response.status_code}", "aptos")
