"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_store,
    get_drive_client,
    get_google_oauth_client,
    get_token_cipher_service,
    get_token_guard,
)
from .guard import require_ready_credentials

__all__ = [
    "get_credential_store",
    "get_drive_client",
    "get_google_oauth_client",
    "get_token_cipher_service",
    "get_token_guard",
    "require_ready_credentials",
]
