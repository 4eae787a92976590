"""Google Drive client wrapper."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import AsyncIterator, List, TYPE_CHECKING

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from app.core.errors import DownloadError, DriveListError, NotFoundError, UploadError
from app.schemas.files import DriveFile

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.clients.google_auth import GoogleOAuthClient

logger = logging.getLogger(__name__)

DEFAULT_LIST_QUERY = "trashed = false"
DEFAULT_CHUNK_SIZE = 1024 * 1024


def _drain(buffer: io.BytesIO) -> bytes:
    data = buffer.getvalue()
    buffer.seek(0)
    buffer.truncate(0)
    return data


class GoogleDriveClient:
    """Create, list and stream Drive files with the relay's current credentials."""

    def __init__(
        self,
        oauth_client: "GoogleOAuthClient",
        drive_root_folder_id: str | None = None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._oauth = oauth_client
        self._drive_root_folder_id = drive_root_folder_id
        self._chunk_size = chunk_size

    def _service(self):
        return build("drive", "v3", credentials=self._oauth.credentials(), cache_discovery=False)

    async def upload_file(self, *, name: str, mime_type: str | None, data: bytes) -> str:
        """Create a Drive file from ``data`` and return its identifier."""

        def _execute_upload() -> str:
            file_metadata = {"name": name}
            if self._drive_root_folder_id:
                file_metadata["parents"] = [self._drive_root_folder_id]

            media = MediaIoBaseUpload(
                io.BytesIO(data),
                mimetype=mime_type or "application/octet-stream",
                resumable=False,
            )
            created = (
                self._service()
                .files()
                .create(body=file_metadata, media_body=media, fields="id")
                .execute()
            )
            return created["id"]

        try:
            file_id = await asyncio.to_thread(_execute_upload)
        except HttpError as exc:
            logger.error("Upload of %s failed: %s", name, exc)
            raise UploadError(f"Error uploading file: {exc.reason}") from exc

        logger.info("Uploaded %s as Drive file %s.", name, file_id)
        return file_id

    async def list_files(self, query: str = DEFAULT_LIST_QUERY) -> List[DriveFile]:
        """Return ``{id, name}`` pairs matching the Drive search ``query``."""

        def _execute_list() -> dict:
            return (
                self._service()
                .files()
                .list(q=query, fields="files(id, name)")
                .execute()
            )

        try:
            response = await asyncio.to_thread(_execute_list)
        except HttpError as exc:
            logger.error("Listing Drive files failed: %s", exc)
            raise DriveListError(f"Error fetching files: {exc.reason}") from exc

        return [DriveFile(**item) for item in response.get("files", [])]

    async def download_file(self, file_id: str) -> AsyncIterator[bytes]:
        """
        Start downloading ``file_id`` and return an iterator over its content.

        The first chunk is fetched before returning so a missing file raises
        ``NotFoundError`` here rather than after a response has started.
        """
        request = await asyncio.to_thread(
            lambda: self._service().files().get_media(fileId=file_id)
        )
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request, chunksize=self._chunk_size)
        done = await self._next_chunk(downloader, file_id)
        return self._stream(downloader, buffer, _drain(buffer), done, file_id)

    async def _stream(
        self,
        downloader: MediaIoBaseDownload,
        buffer: io.BytesIO,
        first_chunk: bytes,
        done: bool,
        file_id: str,
    ) -> AsyncIterator[bytes]:
        if first_chunk:
            yield first_chunk
        while not done:
            done = await self._next_chunk(downloader, file_id)
            chunk = _drain(buffer)
            if chunk:
                yield chunk

    @staticmethod
    async def _next_chunk(downloader: MediaIoBaseDownload, file_id: str) -> bool:
        try:
            _, done = await asyncio.to_thread(downloader.next_chunk)
        except HttpError as exc:
            if exc.resp.status == 404:
                raise NotFoundError(f"File {file_id} not found.") from exc
            logger.error("Download of %s failed: %s", file_id, exc)
            raise DownloadError(f"Error downloading file: {exc.reason}") from exc
        return done


__all__ = ["DEFAULT_LIST_QUERY", "GoogleDriveClient"]
