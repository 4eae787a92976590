"""SQLite-backed substitute for the Supabase credential table."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from app.clients.credential_store import CredentialStore
from app.models.credential import StoredCredential

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.services.token_cipher import TokenCipherService


class SQLiteCredentialStore(CredentialStore):
    """Keep the singleton refresh-token row in a local SQLite file."""

    backend_name = "SQLite"

    def __init__(
        self,
        db_path: str,
        *,
        row_id: int = 1,
        cipher: "TokenCipherService | None" = None,
    ) -> None:
        super().__init__(row_id=row_id, cipher=cipher)
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tokens (
                    id INTEGER PRIMARY KEY,
                    refresh_token TEXT
                )
                """
            )

    def _fetch(self) -> Optional[StoredCredential]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, refresh_token FROM tokens WHERE id = ?",
                (self._row_id,),
            ).fetchone()
        if not row:
            return None
        return StoredCredential(id=row["id"], refresh_token=row["refresh_token"])

    def _upsert(self, record: StoredCredential) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tokens (id, refresh_token)
                VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET refresh_token = excluded.refresh_token
                """,
                (record.id, record.refresh_token),
            )

    def count_rows(self) -> int:
        """Number of rows in the table; the singleton invariant keeps this at most 1."""
        with self._connect() as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM tokens").fetchone()
        return count


__all__ = ["SQLiteCredentialStore"]
