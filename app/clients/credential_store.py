"""
Credential store contract for the singleton refresh-token record.

Backends implement two blocking primitives, ``_fetch`` and ``_upsert``; this
base class runs them off the event loop and applies the soft-failure rules:
reads never raise, empty writes never reach the backend, and write failures
are logged and reported to the caller as ``False``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

from app.models.credential import StoredCredential

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Load and upsert the refresh token stored under a fixed row identifier."""

    backend_name = "credential store"

    def __init__(self, *, row_id: int = 1, cipher: "TokenCipherService | None" = None) -> None:
        self._row_id = row_id
        self._cipher = cipher

    @property
    def row_id(self) -> int:
        return self._row_id

    @abstractmethod
    def _fetch(self) -> Optional[StoredCredential]:
        """Blocking read of the credential row."""

    @abstractmethod
    def _upsert(self, record: StoredCredential) -> None:
        """Blocking insert-or-replace of the credential row."""

    async def load(self) -> Optional[str]:
        """Return the stored refresh token, or ``None`` when absent or unreadable."""
        try:
            record = await asyncio.to_thread(self._fetch)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to read refresh token from %s.", self.backend_name)
            return None

        if record is None or not record.refresh_token:
            logger.warning("No refresh token found in %s.", self.backend_name)
            return None

        refresh_token = record.refresh_token
        if self._cipher is not None:
            try:
                refresh_token = self._cipher.decrypt(refresh_token)
            except ValueError as exc:
                logger.error("Ignoring stored refresh token: %s", exc)
                return None

        logger.info("Refresh token loaded from %s.", self.backend_name)
        return refresh_token

    async def save(self, refresh_token: Optional[str]) -> bool:
        """Upsert the singleton record; returns whether a write succeeded."""
        if not refresh_token:
            return False

        stored_value = refresh_token
        if self._cipher is not None:
            stored_value = self._cipher.encrypt(refresh_token)
        record = StoredCredential(id=self._row_id, refresh_token=stored_value)

        try:
            await asyncio.to_thread(self._upsert, record)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to save refresh token to %s.", self.backend_name)
            return False

        logger.info("Refresh token saved to %s.", self.backend_name)
        return True


__all__ = ["CredentialStore"]
