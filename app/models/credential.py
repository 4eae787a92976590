"""
Domain models for the singleton refresh-token record and in-memory token state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class StoredCredential(BaseModel):
    """Represents the single credential row held by the credential store."""

    id: int = Field(..., description="Fixed identifier of the singleton row.")
    refresh_token: Optional[str] = Field(
        None, description="Long-lived refresh token, possibly encrypted at rest."
    )


@dataclass(slots=True)
class CredentialState:
    """Process-lifetime token cache owned by the OAuth client."""

    access_token: Optional[str] = None
    expiry_date: Optional[datetime] = None
    refresh_token: Optional[str] = None
    revoked: bool = False


__all__ = ["CredentialState", "StoredCredential"]
