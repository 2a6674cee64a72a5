"""
Encryption utilities for session payloads stored at rest.
"""

import json
import logging
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class SessionEncryptionError(Exception):
    """Raised when session data encryption fails"""


class PayloadCipher:
    """Fernet wrapper that turns a session bag into an opaque token and back."""

    def __init__(self, key: str):
        try:
            self.cipher = Fernet(key.encode("utf-8"))
        except (ValueError, TypeError) as e:
            raise ValueError(
                "Invalid SESSION_ENCRYPTION_KEY format; generate one with "
                "cryptography.fernet.Fernet.generate_key()"
            ) from e

    def encrypt(self, payload: dict[str, Any]) -> str:
        try:
            encrypted_bytes = self.cipher.encrypt(json.dumps(payload).encode("utf-8"))
        except (TypeError, ValueError) as e:
            logger.error(
                "Failed to encrypt session payload",
                extra={"error_type": type(e).__name__},
            )
            raise SessionEncryptionError(f"Session data encryption failed: {e}") from e
        return encrypted_bytes.decode("utf-8")

    def decrypt(self, token: str) -> Optional[dict[str, Any]]:
        """Return the payload, or None when the token is corrupt or was made with another key."""
        try:
            decrypted_bytes = self.cipher.decrypt(token.encode("utf-8"))
            return json.loads(decrypted_bytes.decode("utf-8"))
        except (InvalidToken, ValueError) as e:
            logger.warning(
                "Failed to decrypt session payload",
                extra={"error_type": type(e).__name__},
            )
            return None


def build_cipher(key: str) -> Optional[PayloadCipher]:
    """Cipher for a configured key, or None when encryption is disabled."""
    if not key:
        return None
    return PayloadCipher(key)
