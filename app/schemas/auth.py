"""Schemas related to OAuth token diagnostics."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class TokenInfo(BaseModel):
    """Current access-token metadata with the refresh token masked."""

    access_token: Optional[str] = Field(None, description="Current access token, if any.")
    expiry_date: Optional[str] = Field(None, description="ISO-8601 expiry of the access token.")
    refresh_token: str = Field(..., description="'[HIDDEN]' when loaded, otherwise 'Not loaded'.")
    token_will_expire_in: str = Field(..., description="Seconds until expiry, e.g. '3540s'.")


__all__ = ["TokenInfo"]
