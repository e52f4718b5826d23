"""Google Drive client wrapper."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any, Callable, Dict, List, TypeVar, TYPE_CHECKING

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload
from httplib2 import HttpLib2Error

from app.core.errors import ProviderTransportError

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from app.services.credentials import CredentialLifecycleManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LIST_PAGE_SIZE = 1000


class GoogleDriveClient:
    """Thin binding to the Drive v3 file, channel and permission endpoints.

    Every call fetches credentials from the lifecycle manager, builds a fresh
    service object and runs the blocking request in a worker thread. Failures
    surface as ``ProviderTransportError`` and are never retried here.
    """

    def __init__(self, credential_manager: "CredentialLifecycleManager") -> None:
        self._credentials = credential_manager

    async def watch(
        self,
        root_id: str,
        *,
        channel_id: str,
        address: str,
        expiration_ms: int,
    ) -> Dict[str, Any]:
        """Register a web_hook channel on ``root_id``."""
        body = {
            "id": channel_id,
            "type": "web_hook",
            "address": address,
            "expiration": str(expiration_ms),
        }
        return await self._execute(
            "files.watch",
            lambda service: service.files()
            .watch(fileId=root_id, body=body, supportsAllDrives=True)
            .execute(),
        )

    async def stop_channel(self, channel_id: str, resource_id: str) -> None:
        body = {"id": channel_id, "resourceId": resource_id}
        await self._execute(
            "channels.stop",
            lambda service: service.channels().stop(body=body).execute(),
        )

    async def get_file_metadata(self, file_id: str) -> Dict[str, Any]:
        """Fetch id, name and MIME type for a Drive file."""
        return await self._execute(
            "files.get",
            lambda service: service.files()
            .get(fileId=file_id, fields="id, name, mimeType", supportsAllDrives=True)
            .execute(),
        )

    async def open_read_stream(self, file_id: str) -> io.BytesIO:
        """Download a file's content into a rewound in-memory buffer."""

        def _download(service: Any) -> io.BytesIO:
            request = service.files().get_media(fileId=file_id, supportsAllDrives=True)
            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()
            buffer.seek(0)
            return buffer

        return await self._execute("files.get_media", _download)

    async def list_children(self, folder_id: str) -> List[Dict[str, Any]]:
        """List the non-trashed direct children of a folder, following pages."""

        def _list(service: Any) -> List[Dict[str, Any]]:
            children: List[Dict[str, Any]] = []
            page_token = None
            while True:
                response = (
                    service.files()
                    .list(
                        q=f"'{folder_id}' in parents and trashed=false",
                        fields="nextPageToken, files(id, name, mimeType)",
                        pageSize=_LIST_PAGE_SIZE,
                        pageToken=page_token,
                        supportsAllDrives=True,
                        includeItemsFromAllDrives=True,
                    )
                    .execute()
                )
                children.extend(response.get("files", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    return children

        return await self._execute("files.list", _list)

    async def create_file(
        self,
        *,
        name: str,
        parent_id: str,
        mime_type: str,
        content: bytes,
    ) -> Dict[str, Any]:
        """Upload ``content`` as a new file under ``parent_id``."""
        file_metadata = {"name": name, "parents": [parent_id], "mimeType": mime_type}

        def _upload(service: Any) -> Dict[str, Any]:
            media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)
            return (
                service.files()
                .create(
                    body=file_metadata,
                    media_body=media,
                    fields="id, name, webViewLink, webContentLink",
                    supportsAllDrives=True,
                )
                .execute()
            )

        return await self._execute("files.create", _upload)

    async def grant_public_read(self, file_id: str) -> None:
        """Allow anyone with the link to read the file."""
        await self._execute(
            "permissions.create",
            lambda service: service.permissions()
            .create(
                fileId=file_id,
                body={"role": "reader", "type": "anyone"},
                supportsAllDrives=True,
            )
            .execute(),
        )

    async def _execute(self, operation: str, call: Callable[[Any], T]) -> T:
        credentials = await self._credentials.get_credentials()

        def _run() -> T:
            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
            return call(service)

        try:
            return await asyncio.to_thread(_run)
        except HttpError as exc:
            status_code = getattr(exc.resp, "status", None)
            logger.warning("Drive %s failed with HTTP %s", operation, status_code)
            raise ProviderTransportError(
                f"Drive {operation} failed: {exc}",
                status_code=int(status_code) if status_code else None,
            ) from exc
        except (HttpLib2Error, OSError) as exc:
            logger.warning("Drive %s transport error: %s", operation, exc)
            raise ProviderTransportError(f"Drive {operation} failed: {exc}") from exc


__all__ = ["GoogleDriveClient"]
