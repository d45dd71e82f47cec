"""Aptos faucet funding client (testnet/devnet).

Endpoint: POST /mint?address=<addr>&amount=<octas>
Response: ["<txn hash>", ...]
"""

import logging
from typing import Optional

import httpx

from walletsync.errors import ActivationError
from walletsync.funding.base import FundingCollaborator, FundingResult
from walletsync.probes.aptos import normalize_address

logger = logging.getLogger(__name__)


class AptosFaucetFunder(FundingCollaborator):
    """Activates Aptos accounts through the network faucet."""

    def __init__(
        self,
        faucet_url: str,
        amount_octas: int = 100_000_000,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.faucet_url = faucet_url.rstrip("/")
        self.amount_octas = amount_octas
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "aptos-faucet"

    async def fund(self, address: str) -> FundingResult:
        acct = normalize_address(address)
        logger.info(f"Funding {acct} via faucet: {self.amount_octas} octas")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.faucet_url}/mint",
                    params={"address": acct, "amount": self.amount_octas},
                )
        except httpx.HTTPError as e:
            raise ActivationError(f"Faucet unreachable: {e}", "aptos") from e

        if response.status_code != 200:
            raise ActivationError(
                f"Faucet funding failed: HTTP {response.status_code} {response.text[:200]}",
                "aptos",
            )

        try:
            body = response.json()
        except ValueError:
            body = []
        tx_hashes = [str(h) for h in body] if isinstance(body, list) else []

        return FundingResult(success=True, address=acct, tx_hashes=tx_hashes)
