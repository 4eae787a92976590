"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Every factory is cached so the OAuth client, and the credential state it owns,
is a single object shared by the guard, the Drive gateway and the routes.
"""

from functools import lru_cache

from app.clients import (
    CredentialStore,
    GoogleDriveClient,
    GoogleOAuthClient,
    SQLiteCredentialStore,
    SupabaseCredentialStore,
)
from app.core.config import StoreSettings, get_settings
from app.services import TokenCipherService, TokenLifecycleGuard


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService | None:
    """Provide the refresh-token cipher, or ``None`` when encryption is off."""
    return TokenCipherService.from_secret(_settings().security.token_encryption_secret)


def build_credential_store(
    store_settings: StoreSettings, cipher: TokenCipherService | None = None
) -> CredentialStore:
    """Instantiate the credential store backend named by ``store_settings``."""
    if store_settings.backend == "sqlite":
        return SQLiteCredentialStore(
            store_settings.db_path,
            row_id=store_settings.row_id,
            cipher=cipher,
        )
    return SupabaseCredentialStore(
        url=store_settings.supabase_url,
        key=store_settings.supabase_key,
        table_name=store_settings.table_name,
        row_id=store_settings.row_id,
        cipher=cipher,
    )


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the configured credential store backend."""
    return build_credential_store(_settings().store, get_token_cipher_service())


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_token_guard() -> TokenLifecycleGuard:
    """Provide the token lifecycle guard bound to the shared OAuth client."""
    return TokenLifecycleGuard(
        oauth_client=get_google_oauth_client(),
        store=get_credential_store(),
        on_refresh_failure=_settings().oauth.on_refresh_failure,
    )


@lru_cache()
def get_drive_client() -> GoogleDriveClient:
    """Provide Google Drive client instance."""
    settings = _settings()
    return GoogleDriveClient(
        get_google_oauth_client(),
        drive_root_folder_id=settings.google.drive_root_folder_id,
    )


__all__ = [
    "build_credential_store",
    "get_credential_store",
    "get_drive_client",
    "get_google_oauth_client",
    "get_token_cipher_service",
    "get_token_guard",
]
