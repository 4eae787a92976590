"""Expose constructed client wrappers."""

from .credential_store import CredentialStore
from .google_auth import GoogleOAuthClient
from .google_drive import GoogleDriveClient
from .sqlite_store import SQLiteCredentialStore
from .supabase_store import SupabaseCredentialStore

__all__ = [
    "CredentialStore",
    "GoogleDriveClient",
    "GoogleOAuthClient",
    "SQLiteCredentialStore",
    "SupabaseCredentialStore",
]
