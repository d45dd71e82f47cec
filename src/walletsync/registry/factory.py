"""Factory for creating registry clients."""

from typing import Optional

from walletsync.chains import ChainFamily
from walletsync.config import Settings, get_settings
from walletsync.registry.base import WalletRegistry
from walletsync.registry.dryrun import InMemoryWalletRegistry
from walletsync.registry.http import HttpWalletRegistry


def create_registry(auth_token: str, settings: Optional[Settings] = None) -> WalletRegistry:
    """Create a registry client for one session.

    Clients are per session because they carry the user's auth token.
    """
    settings = settings or get_settings()

    if settings.dry_run:
        return InMemoryWalletRegistry()

    return HttpWalletRegistry(
        base_url=settings.registry_base_url,
        auth_token=auth_token,
        chain_keys={
            ChainFamily.APTOS: settings.registry_aptos_chain,
            ChainFamily.EVM: settings.registry_evm_chain,
        },
        timeout=settings.registry_timeout,
    )
