"""Device-resident wallet identity cache."""

from walletsync.identity.cache import WalletIdentityCache
from walletsync.identity.database import IdentityDatabase

__all__ = ["IdentityDatabase", "WalletIdentityCache"]
