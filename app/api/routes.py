"""
FastAPI routes for the Drive token relay.
"""

from __future__ import annotations

import html
import logging
from http import HTTPStatus
from typing import Annotated, Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import (
    HTMLResponse,
    PlainTextResponse,
    RedirectResponse,
    StreamingResponse,
)

from app.core.errors import AuthExchangeError, GatewayError, RelayError, Unauthenticated
from app.dependencies import (
    get_drive_client,
    get_google_oauth_client,
    get_token_guard,
    require_ready_credentials,
)
from app.schemas import DriveFile, TokenInfo

router = APIRouter()
logger = logging.getLogger(__name__)

ReadyCredentials = Depends(require_ready_credentials)

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>{title}</title>
</head>
<body>
  <h1>{title}</h1>
  {body}
</body>
</html>
"""


def _page(title: str, body: str) -> str:
    return _PAGE_TEMPLATE.format(title=html.escape(title), body=body)


def _http_error(exc: RelayError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.get("/", response_class=HTMLResponse)
async def home() -> str:
    """Landing page pointing at the consent flow."""
    return _page(
        "Google Drive Uploader",
        '<a href="/auth">Click here to authenticate with Google Drive</a>',
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth")
async def start_google_oauth_flow(
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
) -> RedirectResponse:
    """Redirect the browser to Google's consent screen."""
    return RedirectResponse(
        url=oauth_client.build_authorization_url(),
        status_code=HTTPStatus.TEMPORARY_REDIRECT,
    )


@router.get("/oauth2callback", response_class=HTMLResponse)
async def handle_google_oauth_callback(
    guard: Annotated[Any, Depends(get_token_guard)],
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
    code: str = Query(..., description="Authorization code returned by Google."),
) -> str:
    """Complete the code exchange and persist the issued refresh token."""
    try:
        saved = await guard.complete_authorization(code)
    except AuthExchangeError as exc:
        logger.error("OAuth2 callback error: %s", exc.detail)
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Authentication failed.",
        ) from exc

    if saved:
        storage_note = "The refresh token has been saved to the credential store."
    elif oauth_client.has_refresh_token:
        storage_note = "The refresh token could not be saved; it is held in memory only."
    else:
        storage_note = (
            "Google did not issue a refresh token. Remove this app's access from "
            "your Google account and authorize again."
        )
    return _page(
        "Authentication Successful",
        f"<p>Your Google account has been authenticated. {storage_note}</p>"
        '<a href="/">Back to Home</a>',
    )


@router.post("/upload", response_class=PlainTextResponse)
async def upload_file(
    _: Annotated[Any, ReadyCredentials],
    drive_client: Annotated[Any, Depends(get_drive_client)],
    file: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
) -> str:
    """Upload a multipart ``file`` to Drive, optionally renamed to ``name``."""
    if file is None or not file.filename:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="No file uploaded")

    data = await file.read()
    try:
        file_id = await drive_client.upload_file(
            name=name or file.filename,
            mime_type=file.content_type,
            data=data,
        )
    except GatewayError as exc:
        raise _http_error(exc) from exc
    return f"File uploaded successfully! File ID: {file_id}"


@router.get("/public-files", response_model=List[DriveFile])
async def list_public_files(
    _: Annotated[Any, ReadyCredentials],
    drive_client: Annotated[Any, Depends(get_drive_client)],
) -> List[DriveFile]:
    """List files that are not in the Drive trash."""
    try:
        return await drive_client.list_files()
    except GatewayError as exc:
        raise _http_error(exc) from exc


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    _: Annotated[Any, ReadyCredentials],
    drive_client: Annotated[Any, Depends(get_drive_client)],
) -> StreamingResponse:
    """Stream the raw bytes of a Drive file."""
    try:
        stream = await drive_client.download_file(file_id)
    except GatewayError as exc:
        raise _http_error(exc) from exc
    return StreamingResponse(stream, media_type="application/octet-stream")


@router.get("/tokens", response_model=TokenInfo)
async def token_info(
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
) -> TokenInfo:
    """Expose access-token metadata; the refresh token is masked."""
    return TokenInfo(**oauth_client.describe())


@router.get("/refreshtoken", response_class=HTMLResponse)
async def refresh_token_manually(
    guard: Annotated[Any, Depends(get_token_guard)],
) -> HTMLResponse:
    """Force a refresh regardless of the current access token's expiry."""
    try:
        await guard.force_refresh()
    except Unauthenticated as exc:
        return PlainTextResponse(
            "Refresh token not found. Please authenticate first by visiting /auth.",
            status_code=exc.status_code,
        )
    except RelayError as exc:
        return HTMLResponse(
            _page(
                "Failed to Refresh Token",
                "<p>An error occurred while trying to refresh the token.</p>"
                f"<pre>{html.escape(exc.detail)}</pre>"
                '<a href="/">Back to Home</a>',
            ),
            status_code=exc.status_code,
        )

    return HTMLResponse(
        _page(
            "Token Refreshed Successfully",
            "<p>Access token was refreshed and the refresh token was saved.</p>"
            '<a href="/">Back to Home</a>',
        )
    )


@router.get("/debug-refresh", response_class=PlainTextResponse)
async def debug_refresh(
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
) -> str:
    """Drop the in-memory access token so the next guarded call refreshes."""
    oauth_client.clear_access_token()
    return "Access token cleared. Try using /upload or /public-files to see if it refreshes."


__all__ = ["router"]
