"""
Token lifecycle guard run ahead of every protected Drive operation.

The guard resolves the shared credential state to *ready* (a refresh token is
held and the access token is outside the refresh window) or raises the error
the route boundary turns into a response. Loading and refreshing happen under
one lock so concurrent requests share a single in-flight refresh.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Literal

from app.clients import CredentialStore, GoogleOAuthClient
from app.core.errors import RefreshError, RefreshFailed, Unauthenticated
from app.models.credential import CredentialState

logger = logging.getLogger(__name__)

RefreshFailurePolicy = Literal["retain", "revoke"]


class TokenLifecycleGuard:
    """Ensure a valid access token exists before a protected operation runs."""

    def __init__(
        self,
        *,
        oauth_client: GoogleOAuthClient,
        store: CredentialStore,
        on_refresh_failure: RefreshFailurePolicy = "retain",
    ) -> None:
        self._oauth = oauth_client
        self._store = store
        self._on_refresh_failure = on_refresh_failure
        self._lock = asyncio.Lock()

    async def load_on_startup(self) -> bool:
        """Best-effort initial load of the persisted refresh token."""
        refresh_token = await self._store.load()
        if refresh_token:
            self._oauth.set_refresh_token(refresh_token)
            return True
        return False

    async def ensure_ready(self) -> CredentialState:
        """Return the ready credential state, refreshing when the token is stale."""
        if self._is_ready():
            return self._oauth.state

        async with self._lock:
            # Another request may have refreshed while this one waited.
            if self._is_ready():
                return self._oauth.state
            await self._ensure_refresh_token()
            if not self._is_ready():
                await self._refresh_and_persist()
        return self._oauth.state

    async def force_refresh(self) -> CredentialState:
        """Refresh unconditionally, loading the refresh token first if needed."""
        async with self._lock:
            await self._ensure_refresh_token()
            await self._refresh_and_persist()
        return self._oauth.state

    async def complete_authorization(self, code: str) -> bool:
        """
        Finish the consent flow with an authorization code.

        Returns whether a refresh token was issued and persisted. Raises
        ``AuthExchangeError`` when Google rejects the code.
        """
        async with self._lock:
            state = await self._oauth.exchange_code(code)
            if state.refresh_token:
                return await self._store.save(state.refresh_token)
        logger.warning("Authorization completed without a refresh token.")
        return False

    def _is_ready(self) -> bool:
        state = self._oauth.state
        return (
            not state.revoked
            and bool(state.refresh_token)
            and bool(state.access_token)
            and not self._oauth.is_access_token_expiring()
        )

    async def _ensure_refresh_token(self) -> None:
        if self._oauth.state.revoked:
            raise Unauthenticated(
                "Stored credentials were revoked. Please visit /auth to re-authorize."
            )
        if self._oauth.has_refresh_token:
            return
        refresh_token = await self._store.load()
        if not refresh_token:
            raise Unauthenticated()
        self._oauth.set_refresh_token(refresh_token)

    async def _refresh_and_persist(self) -> None:
        try:
            await self._oauth.refresh()
        except RefreshError as exc:
            logger.error("Token refresh failed: %s", exc.detail)
            if self._on_refresh_failure == "revoke":
                self._oauth.revoke()
            raise RefreshFailed(f"Failed to refresh token: {exc.detail}") from exc

        await self._store.save(self._oauth.state.refresh_token)
        logger.info("Access token refreshed.")


__all__ = ["RefreshFailurePolicy", "TokenLifecycleGuard"]
