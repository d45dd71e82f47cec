"""HTTP client for the backend wallet registry.

Endpoint: GET /api/wallet/get?chain=<chain>&type=<type>
Response: {"success": true, "data": {"address": "0x...", "privateKey": "..."}}
"""

import logging
from typing import Optional

import httpx

from walletsync.chains import ChainFamily, CustodyType, get_chain
from walletsync.errors import ConnectivityError
from walletsync.registry.base import RegistryRecord, WalletRegistry

logger = logging.getLogger(__name__)


class HttpWalletRegistry(WalletRegistry):
    """Registry client backed by the platform's wallet API."""

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        chain_keys: dict[ChainFamily, str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize registry client.

        Args:
            base_url: Registry API base URL
            auth_token: Bearer token of the session's user
            chain_keys: Registry chain identifier per chain family
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.chain_keys = chain_keys
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "http"

    async def lookup(self, chain_family: ChainFamily) -> Optional[RegistryRecord]:
        chain = get_chain(chain_family)
        params = {
            "chain": self.chain_keys.get(chain_family, chain_family.value),
            "type": chain_family.value,
        }

        if not self.auth_token:
            raise ConnectivityError("No auth token available", chain_family.value)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{self.base_url}/api/wallet/get",
                    params=params,
                    headers={"Authorization": f"Bearer {self.auth_token}"},
                )
        except httpx.HTTPError as e:
            raise ConnectivityError(
                f"Registry unreachable for {chain_family.value}: {e}", chain_family.value
            ) from e

        if response.status_code == 404:
            return None

        if response.status_code != 200:
            raise ConnectivityError(
                f"Registry error for {chain_family.value}: HTTP {response.status_code}",
                chain_family.value,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ConnectivityError(
                f"Registry returned invalid JSON for {chain_family.value}", chain_family.value
            ) from e

        data = body.get("data") or body.get("wallet")
        if not body.get("success") or not data:
            logger.debug(f"Registry has no {chain_family.value} wallet: {body.get('error')}")
            return None

        address = data.get("address")
        if not address:
            return None

        return RegistryRecord(
            connected=True,
            custody_type=chain.custody_type,
            address=address,
            key_ref=data.get("privateKey") if chain.custody_type == CustodyType.SELF_CUSTODY else None,
        )
