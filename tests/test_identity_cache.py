"""Tests for the wallet identity cache."""

import pytest
from cryptography.fernet import Fernet

from walletsync.crypto import FERNET_PREFIX, KeyRefEncryptor
from walletsync.identity.cache import (
    KEY_CUSTODIAL_CONNECTED,
    KEY_SELF_CUSTODY_ADDRESS,
    KEY_SELF_CUSTODY_KEY_REF,
    WalletIdentityCache,
)
from walletsync.identity.repository import IdentityRepository


class TestIdentityRepository:
    """Tests for the key/value repository."""

    @pytest.mark.asyncio
    async def test_set_and_get_value(self, db_session):
        repo = IdentityRepository(db_session)

        await repo.set_value("user-1", "k", "v1")
        assert await repo.get_value("user-1", "k") == "v1"

        await repo.set_value("user-1", "k", "v2")
        assert await repo.get_value("user-1", "k") == "v2"
        assert await repo.get_all_values("user-1") == {"k": "v2"}

    @pytest.mark.asyncio
    async def test_values_are_per_user(self, db_session):
        repo = IdentityRepository(db_session)

        await repo.set_value("user-1", "k", "a")
        await repo.set_value("user-2", "k", "b")

        assert await repo.get_value("user-1", "k") == "a"
        assert await repo.get_value("user-2", "k") == "b"

    @pytest.mark.asyncio
    async def test_clear_user(self, db_session):
        repo = IdentityRepository(db_session)

        await repo.set_value("user-1", "a", "1")
        await repo.set_value("user-1", "b", "2")
        await repo.set_value("user-2", "a", "3")

        removed = await repo.clear_user("user-1")

        assert removed == 2
        assert await repo.get_all_values("user-1") == {}
        assert await repo.get_value("user-2", "a") == "3"


class TestWalletIdentityCache:
    """Tests for the cache facade."""

    @pytest.mark.asyncio
    async def test_empty_cache(self, wallet_cache):
        assert await wallet_cache.get_custodial_connected() is False
        assert await wallet_cache.get_self_custody_address() is None
        assert await wallet_cache.get_self_custody_key_ref() is None

    @pytest.mark.asyncio
    async def test_custodial_flag(self, wallet_cache):
        await wallet_cache.set_custodial_connected(True)
        assert await wallet_cache.get_custodial_connected() is True

        await wallet_cache.set_custodial_connected(False)
        assert await wallet_cache.get_custodial_connected() is False
        assert KEY_CUSTODIAL_CONNECTED not in await wallet_cache.snapshot()

    @pytest.mark.asyncio
    async def test_self_custody_address(self, wallet_cache):
        await wallet_cache.set_self_custody("0xabc")

        assert await wallet_cache.get_self_custody_address() == "0xabc"
        assert await wallet_cache.snapshot() == {KEY_SELF_CUSTODY_ADDRESS: "0xabc"}

    @pytest.mark.asyncio
    async def test_key_ref_encrypted_with_master_key(self, identity_db):
        encryptor = KeyRefEncryptor(Fernet.generate_key().decode())
        wallet_cache = WalletIdentityCache("user-1", db=identity_db, encryptor=encryptor)

        await wallet_cache.set_self_custody("0xabc", key_ref="key-material-ref")

        stored = (await wallet_cache.snapshot())[KEY_SELF_CUSTODY_KEY_REF]
        assert stored.startswith(FERNET_PREFIX)
        assert "key-material-ref" not in stored
        assert await wallet_cache.get_self_custody_key_ref() == "key-material-ref"

    @pytest.mark.asyncio
    async def test_encrypted_key_ref_without_key_is_unreadable(self, identity_db):
        sealed = WalletIdentityCache(
            "user-1", db=identity_db, encryptor=KeyRefEncryptor(Fernet.generate_key().decode())
        )
        await sealed.set_self_custody("0xabc", key_ref="secret")

        plain = WalletIdentityCache("user-1", db=identity_db)
        assert await plain.get_self_custody_key_ref() is None
        assert await plain.get_self_custody_address() == "0xabc"

    @pytest.mark.asyncio
    async def test_key_ref_not_stored_without_master_key(self, wallet_cache):
        await wallet_cache.set_self_custody("0xAAA", key_ref="PRIVATE-KEY-HEX")

        assert await wallet_cache.snapshot() == {KEY_SELF_CUSTODY_ADDRESS: "0xAAA"}
        assert await wallet_cache.get_self_custody_key_ref() is None

    @pytest.mark.asyncio
    async def test_plain_key_ref_row_is_never_returned(self, identity_db):
        async with identity_db() as session:
            await IdentityRepository(session).set_value(
                "user-1", KEY_SELF_CUSTODY_KEY_REF, "PRIVATE-KEY-HEX"
            )
        wallet_cache = WalletIdentityCache(
            "user-1", db=identity_db, encryptor=KeyRefEncryptor(Fernet.generate_key().decode())
        )

        assert await wallet_cache.get_self_custody_key_ref() is None

    @pytest.mark.asyncio
    async def test_clear_on_logout(self, identity_db):
        wallet_cache = WalletIdentityCache(
            "user-1", db=identity_db, encryptor=KeyRefEncryptor(Fernet.generate_key().decode())
        )
        other = WalletIdentityCache("user-2", db=identity_db)
        await other.set_custodial_connected(True)

        await wallet_cache.set_custodial_connected(True)
        await wallet_cache.set_self_custody("0xabc", key_ref="ref")

        removed = await wallet_cache.clear()

        assert removed == 3
        assert await wallet_cache.snapshot() == {}
        assert await other.get_custodial_connected() is True
