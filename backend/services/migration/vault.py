"""
Credential vault.
Encrypts platform API keys before they are written to the job store.
"""

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from core.config import settings

logger = logging.getLogger(__name__)


class CredentialVault:
    """Fernet encryption for stored API keys"""

    def __init__(self, encryption_key: Optional[str] = None):
        key = encryption_key or settings.ENCRYPTION_KEY
        if not key:
            # Keys encrypted with a generated key are unreadable after a restart
            key = Fernet.generate_key().decode()
            logger.warning("Using auto-generated encryption key - set ENCRYPTION_KEY in production!")
        self.fernet = Fernet(key.encode())

    def encrypt(self, secret: str) -> str:
        """Encrypt secret for storage"""
        return self.fernet.encrypt(secret.encode()).decode()

    def decrypt(self, encrypted: str) -> str:
        """
        Decrypt a stored secret.

        Raises:
            ValueError: the value was encrypted with a different key.
        """
        try:
            return self.fernet.decrypt(encrypted.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Stored credential cannot be decrypted with the current ENCRYPTION_KEY") from e


credential_vault = CredentialVault()
