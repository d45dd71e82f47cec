"""Backend wallet registry clients."""

from walletsync.registry.base import RegistryRecord, WalletRegistry
from walletsync.registry.factory import create_registry

__all__ = ["RegistryRecord", "WalletRegistry", "create_registry"]
