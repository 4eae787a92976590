"""Error taxonomy shared by the OAuth client, the token guard and Drive gateway."""

from __future__ import annotations

from http import HTTPStatus


class RelayError(Exception):
    """Base error carrying the HTTP status it maps to at the route boundary."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


# Identity provider


class AuthExchangeError(RelayError):
    """Raised when Google rejects an authorization code exchange."""


class RefreshError(RelayError):
    """Raised when no refresh token is held or Google rejects the refresh."""


# Token guard outcomes


class Unauthenticated(RelayError):
    """No usable refresh token in memory or in the credential store."""

    status_code = HTTPStatus.UNAUTHORIZED

    def __init__(self, detail: str = "Not authenticated. Please visit /auth first.") -> None:
        super().__init__(detail)


class RefreshFailed(RelayError):
    """The refresh token could not be exchanged for a new access token."""


# Drive gateway


class GatewayError(RelayError):
    """Base error for remote Drive failures."""


class UploadError(GatewayError):
    """Drive refused to create the file."""


class DriveListError(GatewayError):
    """Drive refused to list files."""


class DownloadError(GatewayError):
    """Drive failed while streaming file content."""


class NotFoundError(GatewayError):
    """The requested Drive file does not exist or is not visible."""

    status_code = HTTPStatus.NOT_FOUND


__all__ = [
    "AuthExchangeError",
    "DownloadError",
    "DriveListError",
    "GatewayError",
    "NotFoundError",
    "RefreshError",
    "RefreshFailed",
    "RelayError",
    "Unauthenticated",
    "UploadError",
]
