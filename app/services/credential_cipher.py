"""Symmetric encryption for OAuth tokens stored at rest."""

from __future__ import annotations

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken


class CredentialCipher:
    """Encrypt and decrypt token strings with a Fernet key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; the encryption secret may have changed."
            ) from exc
        return plaintext.decode("utf-8")

    def encrypt_optional(self, plaintext: Optional[str]) -> Optional[str]:
        """Encrypt a value that may legitimately be absent (refresh tokens)."""
        return None if plaintext is None else self.encrypt(plaintext)

    def decrypt_optional(self, ciphertext: Optional[str]) -> Optional[str]:
        return None if ciphertext is None else self.decrypt(ciphertext)


__all__ = ["CredentialCipher"]
