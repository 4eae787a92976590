"""Symmetric encryption for the refresh token kept in the credential store."""

from __future__ import annotations

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken


class TokenCipherService:
    """Encrypt and decrypt refresh tokens using a Fernet key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    @classmethod
    def from_secret(cls, secret: Optional[str]) -> Optional["TokenCipherService"]:
        """Return a cipher for ``secret``, or ``None`` when encryption is disabled."""
        if not secret:
            return None
        return cls(secret=secret)

    def encrypt(self, refresh_token: str) -> str:
        return self._fernet.encrypt(refresh_token.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Return the plaintext token; ``ValueError`` if the secret does not match."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Stored refresh token could not be decrypted with the configured secret."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]
