"""Direct EVM RPC probe.

Fallback balance source for the custodial wallet: reads the native balance
with eth_getBalance and the USDC balance with an ERC-20 balanceOf eth_call.
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from walletsync.chains import ChainFamily, get_chain
from walletsync.errors import ConnectivityError, ErrorKind
from walletsync.models import BalanceSnapshot
from walletsync.probes.base import ChainStateProbe
from walletsync.result import Err, Ok, Result

logger = logging.getLogger(__name__)

# ERC20 balanceOf(address) method signature
BALANCE_OF_SIGNATURE = "0x70a08231"


class EvmRpcProbe(ChainStateProbe):
    """Balance probe talking JSON-RPC to a single EVM network."""

    def __init__(
        self,
        rpc_url: str,
        chain_name: str = "EVM",
        native_symbol: str = "ETH",
        usdc_contract: Optional[str] = None,
        usdc_decimals: int = 6,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(ChainFamily.EVM, chain_name)
        self.rpc_url = rpc_url
        self.native_symbol = native_symbol
        self.native_decimals = get_chain(ChainFamily.EVM).native_decimals
        self.usdc_contract = usdc_contract
        self.usdc_decimals = usdc_decimals
        self.timeout = timeout
        self._transport = transport

    async def _rpc_call(self, client: httpx.AsyncClient, method: str, params: list) -> str:
        response = await client.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "method": method, "params": params, "id": 1},
        )

        if response.status_code != 200:
            raise ConnectivityError(f"EVM RPC error: HTTP {response.status_code}", "evm")

        data = response.json()
        if "error" in data:
            raise ConnectivityError(f"EVM RPC {method} failed: {data['error']}", "evm")

        return data.get("result") or "0x0"

    async def get_native_balance(self, client: httpx.AsyncClient, address: str) -> Decimal:
        """Get native token balance (ETH, MATIC, etc.)."""
        result = await self._rpc_call(client, "eth_getBalance", [address, "latest"])
        balance_wei = int(result, 16)
        return Decimal(balance_wei) / Decimal(10**self.native_decimals)

    async def get_token_balance(
        self, client: httpx.AsyncClient, address: str, token_contract: str, decimals: int
    ) -> Decimal:
        """Get ERC20 token balance."""
        address_padded = address.lower().replace("0x", "").zfill(64)
        data = f"{BALANCE_OF_SIGNATURE}{address_padded}"

        result = await self._rpc_call(
            client, "eth_call", [{"to": token_contract, "data": data}, "latest"]
        )
        if result in ("0x", "0x0"):
            return Decimal("0")

        balance_raw = int(result, 16)
        return Decimal(balance_raw) / Decimal(10**decimals)

    async def get_balances(self, address: str) -> Result[BalanceSnapshot]:
        balances: dict[str, Decimal] = {}
        errors: list[str] = []

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                balances[self.native_symbol] = await self.get_native_balance(client, address)
            except (httpx.HTTPError, ConnectivityError, ValueError) as e:
                logger.error(f"Failed to get {self.chain_name} native balance for {address}: {e}")
                errors.append(str(e))

            if self.usdc_contract:
                try:
                    balances["USDC"] = await self.get_token_balance(
                        client, address, self.usdc_contract, self.usdc_decimals
                    )
                except (httpx.HTTPError, ConnectivityError, ValueError) as e:
                    logger.error(f"Failed to get {self.chain_name} USDC balance: {e}")
                    errors.append(str(e))

        if not balances:
            return Err(
                kind=ErrorKind.CONNECTIVITY,
                detail=f"EVM RPC unavailable: {'; '.join(errors)}",
                retryable=True,
            )

        return Ok(self.snapshot(balances))

    async def get_activation_state(self, address: str) -> bool:
        """EVM accounts need no activation."""
        return True
