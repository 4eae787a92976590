"""
Google OAuth utilities.

The client owns the process-wide ``CredentialState`` and performs the two
token-endpoint exchanges the relay needs: authorization code and refresh token.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Type
from urllib.parse import urlencode

import httpx
from fastapi import status
from google.oauth2.credentials import Credentials

from app.core.config import GoogleSettings, OAuthSettings
from app.core.errors import AuthExchangeError, RefreshError, RelayError
from app.models.credential import CredentialState

logger = logging.getLogger(__name__)


class GoogleOAuthClient:
    """Build Google authorization URLs and keep the current tokens in memory."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport
        self._refresh_window = timedelta(seconds=oauth_settings.refresh_window_seconds)
        self._state = CredentialState()

    @property
    def state(self) -> CredentialState:
        return self._state

    @property
    def has_refresh_token(self) -> bool:
        return bool(self._state.refresh_token)

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Construct the consent URL requesting offline access and forced consent."""
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> CredentialState:
        """Exchange an authorization code and install the returned tokens."""
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": str(self._google.redirect_uri),
            "grant_type": "authorization_code",
        }
        token_payload = await self._request_tokens(payload, AuthExchangeError)
        self._state.revoked = False
        self._apply(token_payload)
        return self._state

    async def refresh(self) -> CredentialState:
        """Use the held refresh token to obtain a new access token."""
        if not self._state.refresh_token:
            raise RefreshError("No refresh token is loaded.")

        payload = {
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "refresh_token": self._state.refresh_token,
            "grant_type": "refresh_token",
        }
        token_payload = await self._request_tokens(payload, RefreshError)
        self._apply(token_payload)
        return self._state

    def is_access_token_expiring(self, now: Optional[datetime] = None) -> bool:
        """True when the access token is unknown-expiry or inside the refresh window."""
        expiry = self._state.expiry_date
        if expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        return expiry <= now + self._refresh_window

    def set_refresh_token(self, refresh_token: str) -> None:
        self._state.refresh_token = refresh_token

    def clear_access_token(self) -> None:
        """Forget the access token but keep the refresh token."""
        self._state.access_token = None
        self._state.expiry_date = None

    def revoke(self) -> None:
        """Drop every token and refuse store reloads until a new authorization."""
        self.clear_access_token()
        self._state.refresh_token = None
        self._state.revoked = True

    def credentials(self) -> Credentials:
        """
        Build access-token-only credentials for API clients.

        No refresh token or client secret is handed over, so google-auth can
        never refresh behind the guard.
        """
        expiry = None
        if self._state.expiry_date is not None:
            # google-auth compares against naive UTC timestamps.
            expiry = self._state.expiry_date.astimezone(timezone.utc).replace(tzinfo=None)
        return Credentials(
            token=self._state.access_token,
            scopes=list(self._oauth.scopes),
            expiry=expiry,
        )

    def describe(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Token metadata for diagnostics; the refresh token itself is never exposed."""
        now = now or datetime.now(timezone.utc)
        expiry = self._state.expiry_date
        return {
            "access_token": self._state.access_token,
            "expiry_date": expiry.isoformat() if expiry else None,
            "refresh_token": "[HIDDEN]" if self._state.refresh_token else "Not loaded",
            "token_will_expire_in": (
                f"{round((expiry - now).total_seconds())}s" if expiry else "Unknown"
            ),
        }

    async def _request_tokens(
        self, payload: Dict[str, str], error_cls: Type[RelayError]
    ) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise error_cls(f"Token endpoint request failed: {exc}") from exc

        if response.status_code != status.HTTP_200_OK:
            logger.warning(
                "Token endpoint rejected %s grant with status %s.",
                payload["grant_type"],
                response.status_code,
            )
            raise error_cls(response.text)

        try:
            token_payload = response.json()
            expires_in = int(token_payload["expires_in"])
        except (ValueError, TypeError, KeyError) as exc:
            raise error_cls("Malformed token payload returned from Google.") from exc
        if not token_payload.get("access_token") or expires_in <= 0:
            raise error_cls("Incomplete token payload returned from Google.")
        token_payload["expires_in"] = expires_in
        return token_payload

    def _apply(self, token_payload: Dict[str, Any]) -> None:
        issued_at = datetime.now(timezone.utc)
        self._state.access_token = token_payload["access_token"]
        self._state.expiry_date = issued_at + timedelta(seconds=token_payload["expires_in"])
        # Google only returns a refresh token on consent or when it rotates one.
        refresh_token = token_payload.get("refresh_token")
        if refresh_token:
            self._state.refresh_token = refresh_token


__all__ = ["GoogleOAuthClient"]
