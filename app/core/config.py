"""
Application configuration models and helpers.

Centralizes settings for the OAuth client, the credential store and the Drive
gateway so the FastAPI app and the maintenance scripts share one surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GoogleSettings(BaseSettings):
    """Configuration required for interacting with Google APIs."""

    model_config = SettingsConfigDict(extra="ignore")

    client_id: str = Field(..., alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., alias="GOOGLE_REDIRECT_URI")
    drive_root_folder_id: Optional[str] = Field(
        None,
        alias="GOOGLE_DRIVE_ROOT_FOLDER_ID",
        description="Optional folder that receives uploaded files.",
    )


class OAuthSettings(BaseSettings):
    """OAuth flow and token lifecycle configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://www.googleapis.com/auth/drive.file",),
        alias="OAUTH_SCOPES",
    )
    refresh_window_seconds: int = Field(
        300,
        ge=0,
        alias="OAUTH_REFRESH_WINDOW_SECONDS",
        description="Access tokens expiring within this window are refreshed early.",
    )
    on_refresh_failure: Literal["retain", "revoke"] = Field(
        "retain",
        alias="OAUTH_ON_REFRESH_FAILURE",
        description=(
            "'retain' keeps the refresh token in memory so later requests retry; "
            "'revoke' drops it and requires a new authorization."
        ),
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class StoreSettings(BaseSettings):
    """Where the singleton refresh-token record lives."""

    model_config = SettingsConfigDict(extra="ignore")

    backend: Literal["supabase", "sqlite"] = Field(
        "supabase", alias="CREDENTIAL_STORE_BACKEND"
    )
    supabase_url: Optional[str] = Field(None, alias="SUPABASE_URL")
    supabase_key: Optional[str] = Field(None, alias="SUPABASE_KEY")
    table_name: str = Field("tokens", alias="CREDENTIAL_TABLE")
    row_id: int = Field(1, alias="CREDENTIAL_ROW_ID")
    db_path: str = Field(
        "data/credentials.db",
        alias="CREDENTIAL_DB_PATH",
        description="SQLite file used when the sqlite backend is selected.",
    )

    @model_validator(mode="after")
    def _require_supabase_credentials(self) -> "StoreSettings":
        if self.backend == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY are required for the supabase backend."
            )
        return self


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "When set, the stored refresh token is encrypted with a key derived "
            "from this secret."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StoreSettings",
    "get_settings",
]
