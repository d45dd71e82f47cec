"""Encryption of self-custody key references held in the identity cache.

Uses Fernet (AES-128-CBC with HMAC) for symmetric encryption. Without a
MASTER_KEY no key reference is written to the cache.
"""

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Fernet tokens are base64 and always start with this prefix
FERNET_PREFIX = "gAAAAA"


class KeyRefEncryptor:
    """Encrypts and decrypts key references using Fernet.

    Usage:
        encryptor = KeyRefEncryptor(master_key)
        encrypted = encryptor.encrypt("keyref...")
        decrypted = encryptor.decrypt(encrypted)
    """

    def __init__(self, master_key: str):
        """Initialize with master encryption key.

        Args:
            master_key: Base64-encoded Fernet key (32 bytes)
        """
        self._fernet = Fernet(master_key.encode())

    def encrypt(self, key_ref: str) -> str:
        """Encrypt a key reference."""
        return self._fernet.encrypt(key_ref.encode()).decode()

    def decrypt(self, encrypted: str) -> str:
        """Decrypt an encrypted key reference.

        Raises:
            InvalidToken: If decryption fails (wrong key or corrupted data)
        """
        return self._fernet.decrypt(encrypted.encode()).decode()


def get_encryptor(master_key: Optional[str] = None) -> Optional[KeyRefEncryptor]:
    """Get encryptor instance using MASTER_KEY from settings.

    Returns:
        KeyRefEncryptor if a master key is available, None otherwise
    """
    if master_key is None:
        from walletsync.config import get_settings

        master_key = get_settings().master_key

    if not master_key:
        return None

    return KeyRefEncryptor(master_key)


def open_key_ref(stored: str, encryptor: Optional[KeyRefEncryptor]) -> Optional[str]:
    """Decrypt a stored key reference.

    Values that are not Fernet tokens are ignored, and so is an encrypted
    value that cannot be decrypted. Both yield None.
    """
    if not stored.startswith(FERNET_PREFIX):
        logger.warning("Ignoring cached key reference that is not encrypted")
        return None

    if encryptor is None:
        logger.warning("Cached key reference is encrypted but MASTER_KEY is not set")
        return None

    try:
        return encryptor.decrypt(stored)
    except InvalidToken:
        logger.warning("Cached key reference could not be decrypted (wrong MASTER_KEY?)")
        return None
