"""Wallet identity cache: last-known wallet flags and addresses per user.

The cache is a hint, never the authority: reconciliation overwrites it from
the backend registry and it is cleared on logout.
"""

import logging
from typing import AsyncContextManager, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from walletsync.crypto import KeyRefEncryptor, open_key_ref
from walletsync.identity.repository import IdentityRepository

logger = logging.getLogger(__name__)

KEY_CUSTODIAL_CONNECTED = "custodial_connected"
KEY_SELF_CUSTODY_ADDRESS = "self_custody_address"
KEY_SELF_CUSTODY_KEY_REF = "self_custody_key_ref"

DbFactory = Callable[[], AsyncContextManager[AsyncSession]]


class WalletIdentityCache:
    """Read/write access to one user's cached wallet identity."""

    def __init__(
        self,
        user_id: str,
        db: DbFactory,
        encryptor: Optional[KeyRefEncryptor] = None,
    ):
        self.user_id = user_id
        self._db = db
        self._encryptor = encryptor

    async def get_custodial_connected(self) -> bool:
        async with self._db() as session:
            value = await IdentityRepository(session).get_value(
                self.user_id, KEY_CUSTODIAL_CONNECTED
            )
        return value == "true"

    async def set_custodial_connected(self, connected: bool) -> None:
        async with self._db() as session:
            repo = IdentityRepository(session)
            if connected:
                await repo.set_value(self.user_id, KEY_CUSTODIAL_CONNECTED, "true")
            else:
                await repo.delete_value(self.user_id, KEY_CUSTODIAL_CONNECTED)
        logger.debug(f"Cached custodial flag for user {self.user_id}: {connected}")

    async def get_self_custody_address(self) -> Optional[str]:
        async with self._db() as session:
            return await IdentityRepository(session).get_value(
                self.user_id, KEY_SELF_CUSTODY_ADDRESS
            )

    async def get_self_custody_key_ref(self) -> Optional[str]:
        async with self._db() as session:
            stored = await IdentityRepository(session).get_value(
                self.user_id, KEY_SELF_CUSTODY_KEY_REF
            )
        if stored is None:
            return None
        return open_key_ref(stored, self._encryptor)

    async def set_self_custody(self, address: str, key_ref: Optional[str] = None) -> None:
        """Store the self-custody address and, when given, its sealed key reference.

        Without an encryptor the key reference is dropped and only the
        address is cached.
        """
        async with self._db() as session:
            repo = IdentityRepository(session)
            await repo.set_value(self.user_id, KEY_SELF_CUSTODY_ADDRESS, address)
            if key_ref and self._encryptor is not None:
                await repo.set_value(
                    self.user_id, KEY_SELF_CUSTODY_KEY_REF, self._encryptor.encrypt(key_ref)
                )
        if key_ref and self._encryptor is None:
            logger.warning(
                f"MASTER_KEY is not set; not caching the key reference for user {self.user_id}"
            )
        logger.debug(f"Cached self-custody address for user {self.user_id}: {address}")

    async def snapshot(self) -> dict[str, str]:
        """Raw cached values (key references stay sealed)."""
        async with self._db() as session:
            return await IdentityRepository(session).get_all_values(self.user_id)

    async def clear(self) -> int:
        """Remove every cached value for this user (logout)."""
        async with self._db() as session:
            removed = await IdentityRepository(session).clear_user(self.user_id)
        logger.info(f"Cleared {removed} cached wallet entries for user {self.user_id}")
        return removed
