"""Supabase-backed credential store (table ``tokens`` keyed by ``id``)."""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from supabase import Client, create_client

from app.clients.credential_store import CredentialStore
from app.models.credential import StoredCredential

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.services.token_cipher import TokenCipherService


class SupabaseCredentialStore(CredentialStore):
    """Persist the refresh token as a single row in a Supabase table."""

    backend_name = "Supabase"

    def __init__(
        self,
        *,
        url: str,
        key: str,
        table_name: str = "tokens",
        row_id: int = 1,
        cipher: "TokenCipherService | None" = None,
        client: Client | None = None,
    ) -> None:
        super().__init__(row_id=row_id, cipher=cipher)
        self._url = url
        self._key = key
        self._table_name = table_name
        self._client = client

    def _get_client(self) -> Client:
        # Created lazily so a misconfigured key surfaces as a logged load/save
        # failure instead of an import-time crash.
        if self._client is None:
            self._client = create_client(self._url, self._key)
        return self._client

    def _fetch(self) -> Optional[StoredCredential]:
        response = (
            self._get_client()
            .table(self._table_name)
            .select("id, refresh_token")
            .eq("id", self._row_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return StoredCredential(**rows[0])

    def _upsert(self, record: StoredCredential) -> None:
        (
            self._get_client()
            .table(self._table_name)
            .upsert(record.model_dump(), on_conflict="id")
            .execute()
        )


__all__ = ["SupabaseCredentialStore"]
