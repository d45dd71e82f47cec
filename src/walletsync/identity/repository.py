"""Repository for identity cache rows."""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from walletsync.identity.models import WalletIdentityEntry


class IdentityRepository:
    """Key/value operations on the wallet identity table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_value(self, user_id: str, key: str) -> Optional[str]:
        """Get a cached value."""
        stmt = select(WalletIdentityEntry).where(
            WalletIdentityEntry.user_id == user_id,
            WalletIdentityEntry.key == key,
        )
        result = await self.session.execute(stmt)
        entry = result.scalar_one_or_none()
        return entry.value if entry else None

    async def set_value(self, user_id: str, key: str, value: str) -> WalletIdentityEntry:
        """Insert or update a cached value."""
        stmt = select(WalletIdentityEntry).where(
            WalletIdentityEntry.user_id == user_id,
            WalletIdentityEntry.key == key,
        )
        result = await self.session.execute(stmt)
        entry = result.scalar_one_or_none()

        if entry is None:
            entry = WalletIdentityEntry(user_id=user_id, key=key, value=value)
            self.session.add(entry)
        else:
            entry.value = value

        await self.session.flush()
        return entry

    async def delete_value(self, user_id: str, key: str) -> None:
        """Remove a cached value if present."""
        stmt = delete(WalletIdentityEntry).where(
            WalletIdentityEntry.user_id == user_id,
            WalletIdentityEntry.key == key,
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def get_all_values(self, user_id: str) -> dict[str, str]:
        """Get every cached value for a user."""
        stmt = (
            select(WalletIdentityEntry)
            .where(WalletIdentityEntry.user_id == user_id)
            .order_by(WalletIdentityEntry.key)
        )
        result = await self.session.execute(stmt)
        return {entry.key: entry.value for entry in result.scalars().all()}

    async def clear_user(self, user_id: str) -> int:
        """Delete every cached value for a user.

        Returns:
            Number of rows removed
        """
        stmt = delete(WalletIdentityEntry).where(WalletIdentityEntry.user_id == user_id)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount or 0
